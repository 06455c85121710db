"""The installation-and-lifecycle manager bound to a single Neo4j path.

:class:`ServerManager` is the command surface used by the CLI. Each command
runs inside a structured log operation; errors are recorded there and then
propagate to the caller unchanged (``stop`` recovers from its own timeout).
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from rich.console import Console

from .config import AppConfig
from .logging import StructuredLogger
from .permissions import AdminGate, gate_for
from .platform import PlatformAdapter, platform_for
from .ports import PortPair
from .properties import ConfigStore
from .providers import (
    ConsolePrompter,
    Downloader,
    Installer,
    InstallResult,
    PasswordChanger,
    PasswordChangeResult,
    ProcessController,
    Prompter,
    StopOutcome,
    VersionCatalog,
    VersionResolver,
)
from .version_policy import VersionPolicy, detect_server_version


@dataclass(slots=True)
class ServerManager:
    """Install, run and configure the Neo4j server at :attr:`install_path`."""

    install_path: Path
    platform: PlatformAdapter
    logger: StructuredLogger
    resolver: VersionResolver
    downloader: Downloader
    installer: Installer
    controller: ProcessController
    password_changer: PasswordChanger
    console: Console

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        install_path: Path | None = None,
        console: Console | None = None,
        prompter: Prompter | None = None,
        admin_gate: AdminGate | None = None,
    ) -> ServerManager:
        """Wire a manager from resolved configuration values."""
        path = (install_path or config.install_path).expanduser().absolute()
        platform = platform_for(config.platform)
        out = console or Console()

        def report(message: str) -> None:
            out.print(message, markup=False, highlight=False)

        catalog = VersionCatalog(url=config.catalog.url, timeout=config.http_timeout)
        controller = ProcessController(
            install_path=path,
            platform=platform,
            admin_gate=admin_gate or gate_for(config.admin_gate),
            report=report,
            default_stop_timeout=config.stop_timeout,
        )
        return cls(
            install_path=path,
            platform=platform,
            logger=StructuredLogger(config.logs_dir),
            resolver=VersionResolver(catalog=catalog, report=report),
            downloader=Downloader(
                base_url=config.download.base_url,
                platform=platform,
                timeout=config.http_timeout,
            ),
            installer=Installer(install_path=path, platform=platform),
            controller=controller,
            password_changer=PasswordChanger(
                prompter=prompter or ConsolePrompter(out),
                default_address=config.password.address,
                username=config.password.username,
                timeout=config.http_timeout,
            ),
            console=out,
        )

    # ------------------------------------------------------------------
    # Installation
    # ------------------------------------------------------------------
    def install(self, edition: str) -> InstallResult:
        """Resolve *edition*, download it and install it unless already present."""
        with self.logger.operation(
            "install",
            args={"edition": edition},
            target=self._target(),
        ) as op:
            version = self.resolver.resolve(edition)
            op.add_step("resolve", detail=version)
            self._say(f"Installing neo4j-{version}")

            if self.installer.is_installed():
                self._say(f"Neo4j already installed at: {self.install_path}")
                op.success("Already installed.", changed=0, context={"version": version})
                return InstallResult(
                    version=version,
                    path=self.install_path,
                    already_installed=True,
                )

            archive = self.downloader.download(version)
            op.add_step("download", detail=archive)
            try:
                result = self.installer.install(archive, version)
            finally:
                archive.unlink(missing_ok=True)
            op.add_step("extract", detail=result.path)

            self._say(f"Neo4j installed to: {self.install_path}")
            op.success("Installed.", changed=1, context={"version": version})
            return result

    def server_version(self) -> str:
        """Return the version of the installed server."""
        return detect_server_version(self.install_path)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self, wait: bool = True) -> int | None:
        """Start the server, returning the recorded pid."""
        with self.logger.operation("start", args={"wait": wait}, target=self._target()) as op:
            pid = self.controller.start(wait)
            op.success("Server started.", changed=1, context={"pid": pid})
            return pid

    def stop(self, timeout: float | None = None) -> StopOutcome:
        """Stop the server, escalating to a kill once *timeout* expires."""
        with self.logger.operation("stop", args={"timeout": timeout}, target=self._target()) as op:
            outcome = self.controller.stop(timeout)
            if outcome is StopOutcome.STOPPED:
                op.success("Server stopped.", changed=1)
            else:
                op.warning(
                    "Graceful shutdown timed out.",
                    changed=1 if outcome is StopOutcome.KILLED else 0,
                    context={"outcome": outcome.value},
                )
            return outcome

    def restart(self) -> None:
        """Restart the server."""
        with self.logger.operation("restart", target=self._target()) as op:
            self.controller.restart()
            op.success("Server restarted.", changed=1)

    def info(self) -> None:
        """Print the server's own status report."""
        with self.logger.operation("info", target=self._target()) as op:
            self.controller.info()
            op.success("Reported server info.", changed=0)

    def console_mode(self) -> None:
        """Run the server attached to the terminal."""
        with self.logger.operation("console", target=self._target()) as op:
            self.controller.console()
            op.success("Console session ended.", changed=0)

    def shell(self) -> None:
        """Open the interactive shell, leaving the running state as found."""
        with self.logger.operation("shell", target=self._target()) as op:
            self.controller.shell()
            op.success("Shell session ended.", changed=0)

    def reset(self) -> list[Path]:
        """Stop the server, wipe its data and logs, and start it again."""
        with self.logger.operation("reset", target=self._target()) as op:
            removed = self.controller.reset()
            op.success("Server reset.", changed=len(removed), context={"removed": removed})
            return removed

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def config_auth_enabled(self, enabled: bool) -> list[str]:
        """Toggle authentication in the server's config file."""
        with self.logger.operation(
            "config auth-enabled",
            args={"enabled": enabled},
            target=self._target(),
        ) as op:
            policy = self._policy()
            written = self._store(policy).modify(policy.auth_properties(enabled))
            op.success(
                "Updated authentication settings.",
                changed=len(written),
                context={"keys": written},
            )
            return written

    def config_port(self, port: int) -> PortPair:
        """Bind the HTTP connector to *port* and disable HTTPS on ``port - 1``."""
        with self.logger.operation(
            "config port",
            args={"port": port},
            target=self._target(),
        ) as op:
            ports = PortPair(port)
            self._say(f"Config ports {ports.http} / {ports.https}")
            policy = self._policy()
            written = self._store(policy).modify(policy.port_properties(ports))
            op.success(
                "Updated connector ports.",
                changed=len(written),
                context={"ports": ports.to_dict(), "keys": written},
            )
            return ports

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------
    def change_password(self) -> PasswordChangeResult:
        """Run the interactive password-change flow."""
        with self.logger.operation(
            "change-password",
            target={"kind": "server", "username": self.password_changer.username},
        ) as op:
            result = self.password_changer.run()
            context = {"address": result.address}
            if result.success:
                op.success("Password changed.", changed=1, context=context)
            else:
                op.error(result.message, context=context)
            return result

    # ------------------------------------------------------------------
    def _policy(self) -> VersionPolicy:
        return VersionPolicy.for_installation(self.install_path)

    def _store(self, policy: VersionPolicy) -> ConfigStore:
        return ConfigStore(policy.layout(self.install_path).config_path)

    def _target(self) -> dict[str, object]:
        return {"kind": "installation", "path": self.install_path, "platform": self.platform.name}

    def _say(self, message: str) -> None:
        self.console.print(message, markup=False, highlight=False)


__all__ = ["ServerManager"]

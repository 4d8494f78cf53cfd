import logging
from pathlib import Path

from ledger_sweep.actions import Action, ActionEnv, build_action
from ledger_sweep.config import Settings
from ledger_sweep.credentials import Credential, load_credentials
from ledger_sweep.errors import ConfigError
from ledger_sweep.ledger import LedgerClient
from ledger_sweep.models import SweepConfig
from ledger_sweep.orchestrator import SweepOrchestrator

log = logging.getLogger("ledger_sweep.workload")


class Workload:
    """Everything one run needs, wired from ``Settings``.

    Credentials are loaded here, before any sweep can start, so a missing or
    empty wallet file raises ``CredentialSourceError`` up front.
    """

    def __init__(self, settings: Settings, *, ledger: LedgerClient | None = None,
                 credentials: list[Credential] | None = None, wallet_file: str | Path | None = None):
        self.settings = settings
        self.credentials = credentials if credentials is not None else load_credentials(wallet_file or settings.wallet_file)
        self.ledger = ledger or LedgerClient.from_url(
            settings.rpc_url,
            rpc_timeout=settings.rpc_timeout,
            confirm_timeout=settings.confirm_timeout,
            poll_interval=settings.poll_interval,
            explorer_url=settings.explorer_url,
        )
        self.retry = settings.retry()
        self.delays = settings.delays()
        self.orchestrator = SweepOrchestrator(
            self.credentials, balances=self.ledger, retry=self.retry, delays=self.delays,
        )
        self.env = ActionEnv(
            ledger=self.ledger,
            retry=self.retry,
            delays=self.delays,
            tokens=settings.tokens,
            addresses=[c.address for c in self.credentials],
        )
        self._actions: dict[str, Action] = {}

    @property
    def addresses(self) -> list[str]:
        return [c.address for c in self.credentials]

    def action(self, name: str) -> Action:
        if name not in self._actions:
            if name not in self.settings.actions:
                raise ConfigError(f"action {name!r} is not configured, configured: {sorted(self.settings.actions)}")
            self._actions[name] = build_action(name, self.settings.actions[name], self.env)
            log.debug("Built action %s", name)
        return self._actions[name]

    def rotation_actions(self, names: list[str] | None = None) -> dict[str, Action]:
        names = names or self.settings.autorun_actions or list(self.settings.actions)
        return {n: self.action(n) for n in names}

    async def sweep(self, action_name: str, config: SweepConfig | None = None) -> int:
        config = config or self.settings.sweep
        return await self.orchestrator.run_forever(self.action(action_name), config)

    async def autorun(self, names: list[str] | None = None, config: SweepConfig | None = None) -> int:
        config = config or self.settings.sweep.with_overrides(repeat=self.settings.repeat_window)
        return await self.orchestrator.run_rotation(self.rotation_actions(names), config, self.settings.rotation)

    def stop(self) -> None:
        self.orchestrator.stop()

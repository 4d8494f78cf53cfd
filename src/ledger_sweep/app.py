import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException
from pydantic import BaseModel, PositiveInt

from ledger_sweep.config import load_config, settings_from_cfg
from ledger_sweep.errors import ConfigError, LedgerError
from ledger_sweep.logging_config import setup_logging
from ledger_sweep.models import SweepConfig
from ledger_sweep.workload import Workload

setup_logging()
log = logging.getLogger("ledger_sweep.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Config and credential errors are fatal: uvicorn aborts startup.
    settings = settings_from_cfg(load_config())
    workload = Workload(settings)
    log.info("Loaded %s wallet(s), actions: %s", len(workload.credentials), ", ".join(settings.actions))
    app.state.workload = workload
    app.state.sweep_task = None
    try:
        yield
    finally:
        log.info("Shutting down...")
        workload.stop()
        task: asyncio.Task | None = app.state.sweep_task
        if task and not task.done():
            try:
                await asyncio.wait_for(task, timeout=5)
            except TimeoutError:
                log.warning("Sweep did not stop in time, cancelling")
                task.cancel()
        log.info("Shutdown complete")


app = FastAPI(
    title="Ledger Sweep",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Accounts", "description": "Wallets loaded from the seed file"},
        {"name": "Sweep", "description": "Start and stop sweeps"},
        {"name": "State", "description": "Progress and recent reports"},
    ],
)

r_accounts = APIRouter(prefix="/accounts", tags=["Accounts"])
r_sweep = APIRouter(prefix="/sweep", tags=["Sweep"])
r_state = APIRouter(prefix="/state", tags=["State"])


class SweepReq(BaseModel):
    action: str
    cycles: PositiveInt | None = None
    repeat: bool = False
    interval_hours: str | float | None = None
    amount: str | None = None
    min_pct: float | None = None
    max_pct: float | None = None

    def to_config(self, defaults: SweepConfig, window) -> SweepConfig:
        repeat = self.interval_hours if self.interval_hours is not None else (window if self.repeat else False)
        return SweepConfig.from_params(
            cycles=self.cycles,
            repeat=repeat,
            min_pct=self.min_pct,
            max_pct=self.max_pct,
            fixed_amount=self.amount,
            defaults=defaults,
        )


def _running() -> bool:
    task = app.state.sweep_task
    return task is not None and not task.done()


async def _sweep(w: Workload, action: str, config: SweepConfig):
    try:
        sweeps = await w.sweep(action, config)
        log.info("Background sweep of %s finished after %s sweep(s)", action, sweeps)
    except asyncio.CancelledError:
        log.info("Background sweep of %s cancelled", action)
        raise
    except Exception:
        log.exception("Background sweep of %s crashed", action)
        raise


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/actions")
def list_actions():
    return {"actions": sorted(app.state.workload.settings.actions)}


@r_accounts.get("")
def list_accounts():
    """Addresses in wallet file order."""
    return {"accounts": app.state.workload.addresses}


@r_accounts.get("/{address}/balance")
async def account_balance(address: str, token: str = "XRP"):
    w: Workload = app.state.workload
    if address not in w.addresses:
        raise HTTPException(status_code=404, detail=f"Unknown account: {address}")
    tok = w.settings.tokens.get(token)
    if tok is None:
        raise HTTPException(status_code=404, detail=f"Unknown token: {token}")
    try:
        units = await w.retry.call(lambda: w.ledger.balance(address, tok), name=f"balance {token}")
    except LedgerError as e:
        raise HTTPException(status_code=502, detail=f"Balance lookup failed: {e}")
    return {"address": address, "token": token, "units": units, "balance": tok.format(units)}


@r_sweep.post("")
async def start_sweep(req: SweepReq):
    """Start a sweep in the background. Only one runs at a time."""
    w: Workload = app.state.workload
    if _running():
        raise HTTPException(status_code=409, detail="A sweep is already running")
    try:
        w.action(req.action)
        config = req.to_config(w.settings.sweep, w.settings.repeat_window)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    w.delays.stop.clear()
    log.info("Starting sweep of %s: %s cycle(s), repeat %s", req.action, config.cycles_per_account, config.repeat)
    app.state.sweep_task = asyncio.create_task(_sweep(w, req.action, config), name=f"sweep-{req.action}")
    return {
        "status": "started",
        "action": req.action,
        "cycles": config.cycles_per_account,
        "repeat": str(config.repeat) if config.repeat else None,
        "fixed_amount": str(config.fixed_amount) if config.fixed_amount is not None else None,
    }


@r_sweep.post("/stop")
async def stop_sweep():
    w: Workload = app.state.workload
    if not _running():
        raise HTTPException(status_code=400, detail="No sweep running")
    log.info("Stopping sweep")
    w.stop()
    # Waits end at once; an in-flight step finishes first.
    await asyncio.wait({app.state.sweep_task})
    return {"status": "stopped", "state": w.orchestrator.snapshot()}


@r_state.get("/summary")
def state_summary():
    w: Workload = app.state.workload
    return {"running_task": _running(), **w.orchestrator.snapshot()}


app.include_router(r_accounts)
app.include_router(r_sweep)
app.include_router(r_state)

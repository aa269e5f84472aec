#!/usr/bin/env python3
import logging
import signal
import time
import threading
from pathlib import Path

from app_context import AppContext, build_context
from cli import PhaseAnnunciator, run_console


def setup_logging():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )


def setup_signal_handlers(ctx: AppContext):
    def _handle_shutdown(signum, frame):
        logging.info("Shutdown signal received (%s)", signum)
        ctx.shutdown()

    signal.signal(signal.SIGINT, _handle_shutdown)
    signal.signal(signal.SIGTERM, _handle_shutdown)


def initialize(time_scale: float = 1.0) -> AppContext:
    logging.info("Initializing application")

    ctx = build_context(
        clock=time.time,
        period_s=1.0,
        time_scale=time_scale,
        fault_log=Path("logs") / "fault_log.txt",
        command_log=Path("logs") / "command_log.csv",
        on_tick=PhaseAnnunciator(),
    )

    logging.info(
        "Loaded %d programs; simulation backend ready", len(ctx.controller.programs)
    )
    return ctx


def control_loop(ctx: AppContext, loop_sleep: float = 1.0):
    logging.info("Starting control loop (tick=%.3fs)", loop_sleep)

    while not ctx.shutdown_event.is_set():
        try:
            # console "run" hands ticking to the background ControlLoop
            if not ctx.loop.running:
                ctx.loop.step()
        except Exception:
            logging.exception("Unhandled exception in control loop")

        time.sleep(loop_sleep)

    logging.info("Control loop terminated")


def main():
    setup_logging()
    ctx = initialize()
    setup_signal_handlers(ctx)

    t = threading.Thread(
        target=control_loop, args=(ctx,), kwargs={"loop_sleep": ctx.loop.period_s}, daemon=True
    )
    t.start()

    run_console(ctx, prompt="stz> ")
    ctx.shutdown()

    logging.info("Main loop terminated")


if __name__ == "__main__":
    main()

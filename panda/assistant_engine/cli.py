from __future__ import annotations

import asyncio
import contextlib
import sys

from panda.assistant_engine.components import StaticCapabilityGate
from panda.assistant_engine.runtime import AssistantOrchestrator, build_default_orchestrator
from panda.config import Settings


async def _print_events(orchestrator: AssistantOrchestrator) -> None:
    async for event in orchestrator.events():
        print(f"[{event.event_type.value}] #{event.sequence} -> {event.payload}")


async def _print_turns(orchestrator: AssistantOrchestrator, task: asyncio.Task | None) -> None:
    if task is None:
        return
    with contextlib.suppress(asyncio.CancelledError):
        result = await task
        for turn in result.turns:
            if not turn.from_user:
                print(f"{orchestrator.persona.display_name}: {turn.content}")


async def run_interactive(print_events: bool = False) -> None:
    settings = Settings.from_env()
    gate = StaticCapabilityGate(settings.granted_capabilities)
    orchestrator = build_default_orchestrator(settings=settings, capabilities=gate)
    printer_task = asyncio.create_task(_print_events(orchestrator)) if print_events else None

    greeting = orchestrator.greet()
    if greeting is not None:
        print(f"{orchestrator.persona.display_name}: {greeting.content}")
    print("Type a command, '/grant <capability>', '/clear', or '/quit' to exit.")
    try:
        while True:
            line = await asyncio.to_thread(input, "you> ")
            text = line.strip()
            if not text:
                continue
            if text.lower() in {"/quit", "quit", "exit"}:
                break
            if text.lower() == "/clear":
                orchestrator.clear_conversation()
                print("Conversation cleared.")
                continue
            if text.lower().startswith("/grant "):
                token = text[len("/grant "):].strip()
                gate.grant(token)
                await _print_turns(orchestrator, orchestrator.notify_capability_granted(token))
                continue
            await _print_turns(orchestrator, orchestrator.submit(text, add_user_message=True))
    finally:
        await orchestrator.shutdown()
        if printer_task is not None:
            printer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await printer_task


def main() -> None:
    asyncio.run(run_interactive(print_events="--events" in sys.argv[1:]))


if __name__ == "__main__":
    main()

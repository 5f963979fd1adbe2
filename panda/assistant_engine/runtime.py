from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from typing import AsyncIterator

from panda.assistant_engine.components import (
    FileSpeechOutput,
    PermissionGate,
    RuleBasedCommandClassifier,
    SqliteConversationSink,
    StaticCapabilityGate,
    build_desktop_executor,
    build_language_model,
)
from panda.assistant_engine.config import EngineConfig
from panda.assistant_engine.interfaces import (
    CapabilityGate,
    CommandClassifier,
    ConversationSink,
    DeviceActionExecutor,
    LanguageModelClient,
    SpeechOutput,
)
from panda.assistant_engine.models import (
    AssistantPersona,
    Command,
    CommandOutcome,
    ConversationTurn,
    EngineEvent,
    EventType,
    PendingCommand,
    RawInput,
    RunResult,
    RunState,
    command_payload,
    now_ts,
)
from panda.config import Settings
from panda.storage import Storage


def _configure_logger(level: str) -> logging.Logger:
    logger = logging.getLogger("panda.assistant_engine")
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


class AssistantOrchestrator:
    """Sequences classification, permission checks, local actions and AI replies.

    At most one run is active. ``submit`` cancels the active run before it
    schedules the next one, and a superseded run never touches conversation
    state again: every turn and speech request checks that its run is still
    the current one.
    """

    def __init__(
        self,
        config: EngineConfig,
        classifier: CommandClassifier,
        permissions: PermissionGate,
        executor: DeviceActionExecutor,
        language_model: LanguageModelClient,
        conversation: ConversationSink,
        speech: SpeechOutput,
        persona: AssistantPersona | None = None,
    ) -> None:
        self.config = config
        self.classifier = classifier
        self.permissions = permissions
        self.executor = executor
        self.language_model = language_model
        self.conversation = conversation
        self.speech = speech
        self.persona = persona or AssistantPersona()

        self.logger = _configure_logger(config.log_level)
        self._events: asyncio.Queue[EngineEvent] = asyncio.Queue(maxsize=config.event_queue_size)
        self._sequence = itertools.count(1)
        self._run_ids = itertools.count(1)
        self._active_task: asyncio.Task[RunResult] | None = None
        self._active_run: int | None = None
        self._speech_tasks: set[asyncio.Task[None]] = set()
        self._pending: PendingCommand | None = None
        self._processing = False
        self._state = RunState.IDLE
        self._greeting_shown = False
        self._last_turn_ts = 0.0

    @property
    def processing(self) -> bool:
        return self._processing

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def pending_command(self) -> PendingCommand | None:
        return self._pending

    @property
    def active_task(self) -> asyncio.Task[RunResult] | None:
        return self._active_task

    @property
    def greeting_shown(self) -> bool:
        return self._greeting_shown

    def submit(self, text: str, add_user_message: bool = True) -> asyncio.Task[RunResult]:
        raw_input = RawInput(text=text, sequence=next(self._sequence))
        if self._pending is not None:
            self.logger.info(
                "Discarding pending command #%d waiting on %s",
                self._pending.raw_input.sequence,
                self._pending.capability,
            )
            self._pending = None
        return self._start(raw_input, add_user_message)

    def notify_capability_granted(self, token: str) -> asyncio.Task[RunResult] | None:
        pending = self._pending
        if pending is None or pending.capability != token.strip().lower():
            return None
        # Cleared before the run is scheduled so a repeated grant cannot resume twice.
        self._pending = None
        self.logger.info("Resuming command #%d after %s was granted", pending.raw_input.sequence, token)
        self._emit(
            EventType.COMMAND_RESUMED,
            pending.raw_input.sequence,
            {"capability": pending.capability, "text": pending.raw_input.text},
        )
        return self._start(pending.raw_input, add_user_message=False)

    def clear_conversation(self) -> None:
        self.conversation.clear()
        self._greeting_shown = False
        self._emit(EventType.CONVERSATION_CLEARED, 0, {})

    def greet(self) -> ConversationTurn | None:
        if self._greeting_shown or self.conversation.count() > 0:
            return None
        greeting = self.config.greeting_template.replace("{name}", self.persona.display_name)
        turn = self._append_turn(greeting, from_user=False, sequence=0)
        self._request_speech(greeting, sequence=0)
        self._greeting_shown = True
        self._emit(EventType.GREETING_SHOWN, 0, {"text": greeting})
        return turn

    async def wait_idle(self) -> None:
        while True:
            task = self._active_task
            if task is not None and not task.done():
                await asyncio.wait({task})
                continue
            if self._speech_tasks:
                await asyncio.wait(set(self._speech_tasks))
                continue
            return

    async def shutdown(self) -> None:
        task = self._active_task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._active_task = None
        self._active_run = None
        self._set_processing(False)
        self._state = RunState.IDLE
        await self.wait_idle()

    async def events(self) -> AsyncIterator[EngineEvent]:
        while True:
            yield await self._events.get()

    def drain_events(self) -> list[EngineEvent]:
        drained: list[EngineEvent] = []
        while not self._events.empty():
            drained.append(self._events.get_nowait())
        return drained

    def _start(self, raw_input: RawInput, add_user_message: bool) -> asyncio.Task[RunResult]:
        self._supersede_active_run()
        self.greet()
        run_id = next(self._run_ids)
        task = asyncio.get_running_loop().create_task(
            self._run(run_id, raw_input, add_user_message),
            name=f"assistant-run-{run_id}",
        )
        self._active_task = task
        self._active_run = run_id
        return task

    def _supersede_active_run(self) -> None:
        task = self._active_task
        if task is not None and not task.done():
            self.logger.info("Cancelling active run %s", task.get_name())
            task.cancel()
            self._emit(EventType.RUN_CANCELLED, 0, {"task": task.get_name(), "reason": "superseded"})
        self._active_task = None
        self._active_run = None
        self._set_processing(False)
        self._state = RunState.IDLE

    async def _run(self, run_id: int, raw_input: RawInput, add_user_message: bool) -> RunResult:
        seq = raw_input.sequence
        turns: list[ConversationTurn] = []
        try:
            self._enter(run_id, RunState.CLASSIFYING)
            command = self.classifier.classify(raw_input.text)
            self._emit(EventType.COMMAND_CLASSIFIED, seq, command_payload(command))

            decision = self.permissions.evaluate(command)
            if not decision.allowed and decision.capability and self.config.defer_on_missing_capability:
                return self._defer(run_id, raw_input, command, decision.capability, add_user_message)

            self._enter(run_id, RunState.EXECUTING)
            self._set_processing(True)
            if add_user_message:
                turns.append(self._record(run_id, raw_input.text, from_user=True, sequence=seq))

            outcome = await self._execute(command)
            self._ensure_current(run_id)
            self._emit(
                EventType.ACTION_EXECUTED,
                seq,
                {
                    "kind": command.kind.value,
                    "handled_locally": outcome.handled_locally,
                    "message": outcome.local_message,
                },
            )
            if outcome.handled_locally and outcome.local_message:
                turns.append(self._say(run_id, outcome.local_message, seq))

            self._enter(run_id, RunState.REPLYING)
            reply = await self._complete(run_id, raw_input)
            self._ensure_current(run_id)
            turns.append(self._say(run_id, reply, seq))

            self._emit(EventType.RUN_FINISHED, seq, {"kind": command.kind.value, "turns": len(turns)})
            return RunResult(
                raw_input=raw_input,
                command=command,
                state=RunState.IDLE,
                turns=tuple(turns),
                outcome=outcome,
            )
        except asyncio.CancelledError:
            self.logger.debug("Run %d for input #%d cancelled", run_id, seq)
            if self._active_run == run_id:
                self._state = RunState.CANCELLED
            raise
        finally:
            if self._active_run == run_id:
                self._active_task = None
                self._active_run = None
                self._set_processing(False)
                self._state = RunState.IDLE

    def _defer(
        self,
        run_id: int,
        raw_input: RawInput,
        command: Command,
        capability: str,
        add_user_message: bool,
    ) -> RunResult:
        seq = raw_input.sequence
        self._enter(run_id, RunState.GATED)
        self._pending = PendingCommand(raw_input=raw_input, capability=capability)
        turns: list[ConversationTurn] = []
        if add_user_message:
            turns.append(self._record(run_id, raw_input.text, from_user=True, sequence=seq))
        turns.append(self._say(run_id, self.config.rationale_for(capability), seq))
        self.logger.info("Command #%d deferred until %s is granted", seq, capability)
        self._emit(EventType.COMMAND_DEFERRED, seq, {"capability": capability, "kind": command.kind.value})
        return RunResult(raw_input=raw_input, command=command, state=RunState.IDLE, turns=tuple(turns))

    async def _execute(self, command: Command) -> CommandOutcome:
        try:
            return await self.executor.execute(command)
        except Exception:
            self.logger.exception("Device action executor failure")
            return CommandOutcome(handled_locally=False)

    async def _complete(self, run_id: int, raw_input: RawInput) -> str:
        try:
            reply = await self.language_model.complete(raw_input.text, self.persona)
        except Exception as exc:
            self._ensure_current(run_id)
            self.logger.warning("Language model failure for input #%d: %s", raw_input.sequence, exc)
            self._emit(
                EventType.LLM_FAILED,
                raw_input.sequence,
                {"error": type(exc).__name__, "message": str(exc)},
            )
            return self.config.llm_failure_message
        self._ensure_current(run_id)
        self._emit(EventType.LLM_RESPONSE, raw_input.sequence, {"text": reply})
        return reply

    def _enter(self, run_id: int, state: RunState) -> None:
        self._ensure_current(run_id)
        self._state = state

    def _ensure_current(self, run_id: int) -> None:
        # Collaborators may swallow cancellation; a late result must still be dropped.
        if self._active_run != run_id:
            raise asyncio.CancelledError()

    def _say(self, run_id: int, text: str, sequence: int) -> ConversationTurn:
        turn = self._record(run_id, text, from_user=False, sequence=sequence)
        self._request_speech(text, sequence)
        return turn

    def _record(self, run_id: int, content: str, from_user: bool, sequence: int) -> ConversationTurn:
        self._ensure_current(run_id)
        return self._append_turn(content, from_user, sequence)

    def _append_turn(self, content: str, from_user: bool, sequence: int) -> ConversationTurn:
        timestamp = max(now_ts(), self._last_turn_ts)
        self._last_turn_ts = timestamp
        turn = ConversationTurn(content=content, from_user=from_user, timestamp=timestamp)
        self.conversation.append(turn)
        self._emit(EventType.TURN_RECORDED, sequence, {"content": content, "from_user": from_user})
        return turn

    def _request_speech(self, text: str, sequence: int) -> None:
        task = asyncio.get_running_loop().create_task(self._speak(text), name=f"assistant-speech-{sequence}")
        self._speech_tasks.add(task)
        task.add_done_callback(self._speech_tasks.discard)
        self._emit(EventType.SPEECH_REQUESTED, sequence, {"text": text})

    async def _speak(self, text: str) -> None:
        try:
            await self.speech.speak(text)
        except Exception:
            self.logger.exception("Speech output failure")

    def _set_processing(self, value: bool) -> None:
        if self._processing == value:
            return
        self._processing = value
        self._emit(EventType.PROCESSING_CHANGED, 0, {"processing": value})

    def _emit(self, event_type: EventType, sequence: int, payload: dict[str, object]) -> None:
        event = EngineEvent(event_type=event_type, sequence=sequence, payload=payload)
        if self._events.full():
            with contextlib.suppress(asyncio.QueueEmpty):
                self._events.get_nowait()
        self._events.put_nowait(event)
        self.logger.debug("%s seq=%s payload=%s", event_type.value, sequence, payload)


def build_default_orchestrator(
    settings: Settings | None = None,
    config: EngineConfig | None = None,
    capabilities: CapabilityGate | None = None,
) -> AssistantOrchestrator:
    app_settings = settings or Settings.from_env()
    cfg = config or EngineConfig.from_env()
    gate = capabilities or StaticCapabilityGate(app_settings.granted_capabilities)
    storage = Storage(app_settings.db_path)
    return AssistantOrchestrator(
        config=cfg,
        classifier=RuleBasedCommandClassifier(),
        permissions=PermissionGate(gate),
        executor=build_desktop_executor(app_settings.allowed_apps, capabilities=gate, storage=storage),
        language_model=build_language_model(cfg),
        conversation=SqliteConversationSink(storage),
        speech=FileSpeechOutput(cfg.speech_output_dir, voice=app_settings.assistant_voice),
        persona=AssistantPersona(
            display_name=app_settings.assistant_name,
            voice_preference=app_settings.assistant_voice,
        ),
    )

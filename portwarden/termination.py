"""Process termination flow.

A kill request moves through explicit states::

    IDLE -> VALIDATING -> BLOCKED
                       -> AWAITING_OVERRIDE -> CANCELLED | AWAITING_FINAL_WARNING
                       -> AWAITING_FINAL_WARNING -> CANCELLED | AWAITING_CONFIRM
                       -> AWAITING_CONFIRM -> CANCELLED | EXECUTING
    EXECUTING -> SUCCEEDED | FAILED

Each gate is a pure function from one :class:`KillFlow` to the next, so
the flow can be driven by a terminal prompt, a GUI dialog or a test
without changing the rules. :class:`TerminationCoordinator` wires the
gates to a :class:`Confirmer` and runs the kill command.
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict

from .analysis.protection import ProtectionClassifier
from .errors import INVALID_PID_MESSAGE, KILL_FAILED_MESSAGE, describe_kill_failure
from .models import KillRequest, KillResult, ProtectionVerdict
from .system.platforms import PlatformStrategy, detect_platform
from .system.process import get_process_name
from .system.runner import CommandRunner, SubprocessRunner


logger = logging.getLogger(__name__)

PROTECTED_SUGGESTION = "Please stop the service properly using the appropriate method."


class KillState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BLOCKED = "blocked"
    AWAITING_OVERRIDE = "awaiting_override"
    AWAITING_FINAL_WARNING = "awaiting_final_warning"
    AWAITING_CONFIRM = "awaiting_confirm"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {KillState.BLOCKED, KillState.SUCCEEDED, KillState.FAILED, KillState.CANCELLED}
)


class InvalidTransition(RuntimeError):
    pass


class KillFlow(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: KillState = KillState.IDLE
    request: Optional[KillRequest] = None
    verdict: Optional[ProtectionVerdict] = None
    result: Optional[KillResult] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES


class Prompt(BaseModel):
    title: str
    message: str
    detail: str = ""
    accept_label: str = "OK"
    checkbox_label: Optional[str] = None


@dataclass(frozen=True)
class OverrideAnswer:
    force: bool = False
    acknowledged: bool = False


def coerce_pid(value: Any) -> Optional[int]:
    """Return a positive integer PID, or None for anything else."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if math.isnan(value) or not value.is_integer():
            return None
        value = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            return None
        value = int(text)
    elif not isinstance(value, int):
        return None
    return value if value > 0 else None


def _expect(flow: KillFlow, state: KillState) -> None:
    if flow.state is not state:
        raise InvalidTransition(f"expected state {state.value}, flow is {flow.state.value}")


def _finish(flow: KillFlow, state: KillState, result: KillResult) -> KillFlow:
    return flow.model_copy(update={"state": state, "result": result})


def _move(flow: KillFlow, state: KillState) -> KillFlow:
    return flow.model_copy(update={"state": state})


# -- transitions ---------------------------------------------------------

def begin(pid: Any, process_name: Optional[str] = None, port: Optional[int] = None, force_stop: bool = False) -> KillFlow:
    """IDLE -> VALIDATING, or FAILED when the PID is not a positive integer."""
    valid_pid = coerce_pid(pid)
    if valid_pid is None:
        return KillFlow(
            state=KillState.FAILED,
            result=KillResult(success=False, error=INVALID_PID_MESSAGE, user_message=f"Invalid PID: {pid!r}"),
        )
    request = KillRequest(pid=valid_pid, process_name=process_name, port=port, force_stop=bool(force_stop))
    return KillFlow(state=KillState.VALIDATING, request=request)


def validate(flow: KillFlow, classifier: ProtectionClassifier) -> KillFlow:
    """Classify the target afresh; protection flags from the caller are never used."""
    _expect(flow, KillState.VALIDATING)
    req = flow.request
    verdict = classifier.classify(req.process_name, req.port)
    flow = flow.model_copy(update={"verdict": verdict})

    if verdict.level == "critical" and not verdict.can_override:
        name = req.process_name or f"PID {req.pid}"
        return _finish(
            flow,
            KillState.BLOCKED,
            KillResult(
                success=False,
                error="Process is protected",
                user_message=f"{name} is a critical system process and cannot be stopped: "
                + "; ".join(verdict.reasons),
                suggestion=PROTECTED_SUGGESTION,
                protected=True,
                protection=verdict,
            ),
        )
    if verdict.is_protected:
        if req.force_stop:
            return _move(flow, KillState.AWAITING_FINAL_WARNING)
        return _move(flow, KillState.AWAITING_OVERRIDE)
    return _move(flow, KillState.AWAITING_CONFIRM)


def answer_override(flow: KillFlow, force: bool, acknowledged: bool) -> KillFlow:
    """Proceed only when the user chose to force AND acknowledged the risk."""
    _expect(flow, KillState.AWAITING_OVERRIDE)
    if force and acknowledged:
        return _move(flow, KillState.AWAITING_FINAL_WARNING)
    return _finish(
        flow,
        KillState.CANCELLED,
        KillResult(
            success=False,
            error="Protected system process",
            user_cancelled=True,
            protected=True,
            protection=flow.verdict,
        ),
    )


def answer_final_warning(flow: KillFlow, accepted: bool) -> KillFlow:
    _expect(flow, KillState.AWAITING_FINAL_WARNING)
    if accepted:
        return _move(flow, KillState.AWAITING_CONFIRM)
    return _finish(
        flow,
        KillState.CANCELLED,
        KillResult(success=False, error="User cancelled force stop", user_cancelled=True),
    )


def answer_confirm(flow: KillFlow, accepted: bool) -> KillFlow:
    _expect(flow, KillState.AWAITING_CONFIRM)
    if accepted:
        return _move(flow, KillState.EXECUTING)
    return _finish(flow, KillState.CANCELLED, KillResult(success=False, error="User cancelled"))


def execute(flow: KillFlow, platform: PlatformStrategy, runner: CommandRunner) -> KillFlow:
    """Run the platform kill command; the only transition with side effects."""
    _expect(flow, KillState.EXECUTING)
    pid = flow.request.pid
    result = runner.run(platform.kill_command(pid))
    if result.ok:
        return _finish(
            flow,
            KillState.SUCCEEDED,
            KillResult(success=True, message=f"Process {pid} has been terminated"),
        )
    described = describe_kill_failure(result.error, platform.is_windows)
    return _finish(
        flow,
        KillState.FAILED,
        KillResult(
            success=False,
            error=result.error,
            user_message=described.user_message,
            needs_elevation=described.needs_elevation if described.kind == "permission" else None,
        ),
    )


# -- prompts -------------------------------------------------------------

_CATEGORY_BULLETS = {
    "system": [
        "It is a critical system process",
        "Killing it could crash your system or make it unusable",
    ],
    "database": [
        "It is a database service",
        "Killing it could cause data loss or corruption",
        "Applications may depend on this service",
    ],
    "infrastructure": [
        "It is a critical development service",
        "Other containers or services may depend on it",
        "It should be stopped gracefully through proper commands",
    ],
}


def prompt_for(flow: KillFlow, classifier: ProtectionClassifier) -> Prompt:
    """Dialog content for the gate ``flow`` is waiting on."""
    req = flow.request
    name = req.process_name or "process"

    if flow.state is KillState.AWAITING_OVERRIDE:
        category = classifier.service_category(req.process_name)
        bullets = _CATEGORY_BULLETS.get(category) or list(flow.verdict.reasons)
        detail = "This process is protected because:\n\n"
        detail += "\n".join(f"- {b}" for b in bullets)
        detail += "\n\nHowever, you can still force stop this process if you understand the risks."
        return Prompt(
            title="Protected Process Warning",
            message=f"{name} is a protected process",
            detail=detail,
            accept_label="Force Stop Anyway",
            checkbox_label="I understand the risks and want to proceed",
        )

    if flow.state is KillState.AWAITING_FINAL_WARNING:
        return Prompt(
            title="FINAL WARNING",
            message="Are you ABSOLUTELY sure?",
            detail=(
                f"You are about to forcefully stop {name} (PID: {req.pid}).\n\n"
                "This may cause:\n"
                "- System instability or crashes\n"
                "- Data loss or corruption\n"
                "- Loss of unsaved work\n"
                "- Network or service disruptions\n\n"
                "This action cannot be undone. Only proceed if you fully understand the consequences."
            ),
            accept_label="Yes, Force Stop",
        )

    if flow.state is KillState.AWAITING_CONFIRM:
        detail = "This will stop the process."
        if req.port:
            detail += f" It is using port {req.port}."
        service = classifier.critical_service(req.port)
        if service:
            detail += (
                f"\n\nWARNING: Port {req.port} is commonly used for {service}. "
                "Stopping this process may affect important services."
            )
        return Prompt(
            title="Confirm Process Stop",
            message=f"Stop {name} (PID: {req.pid})?",
            detail=detail,
            accept_label="Stop Process",
        )

    raise InvalidTransition(f"no prompt for state {flow.state.value}")


# -- coordinator ---------------------------------------------------------

class Confirmer(Protocol):
    def override(self, prompt: Prompt) -> OverrideAnswer:
        ...

    def final_warning(self, prompt: Prompt) -> bool:
        ...

    def confirm(self, prompt: Prompt) -> bool:
        ...


@dataclass
class PresetConfirmer:
    """Answers every gate with fixed values and records the prompts shown."""

    force: bool = False
    acknowledged: bool = False
    accept_final: bool = True
    accept: bool = True
    prompts: List[Prompt] = field(default_factory=list)

    def override(self, prompt: Prompt) -> OverrideAnswer:
        self.prompts.append(prompt)
        return OverrideAnswer(force=self.force, acknowledged=self.acknowledged)

    def final_warning(self, prompt: Prompt) -> bool:
        self.prompts.append(prompt)
        return self.accept_final

    def confirm(self, prompt: Prompt) -> bool:
        self.prompts.append(prompt)
        return self.accept


class TerminationCoordinator:
    """Drive kill requests through validation, confirmation and execution.

    Requests are independent: nothing is serialized across them, and a
    repeated kill of a vanished PID ends in a FAILED flow with an
    "already terminated" message.
    """

    def __init__(
        self,
        classifier: Optional[ProtectionClassifier] = None,
        platform: Optional[PlatformStrategy] = None,
        runner: Optional[CommandRunner] = None,
        confirmer: Optional[Confirmer] = None,
        name_resolver: Optional[Callable[[int], Optional[str]]] = get_process_name,
        on_success: Optional[Callable[[KillRequest, KillResult], None]] = None,
    ):
        self.classifier = classifier or ProtectionClassifier()
        self.platform = platform or detect_platform()
        self.runner = runner or SubprocessRunner()
        self.confirmer = confirmer or PresetConfirmer()
        self.name_resolver = name_resolver
        self.on_success = on_success
        self.outcomes: Counter = Counter()

    def run_flow(self, flow: KillFlow) -> KillFlow:
        """Advance ``flow`` through every gate until it reaches a terminal state."""
        if flow.state is KillState.VALIDATING:
            flow = validate(flow, self.classifier)
        while not flow.done:
            if flow.state is KillState.AWAITING_OVERRIDE:
                answer = self.confirmer.override(prompt_for(flow, self.classifier))
                flow = answer_override(flow, answer.force, answer.acknowledged)
            elif flow.state is KillState.AWAITING_FINAL_WARNING:
                flow = answer_final_warning(flow, self.confirmer.final_warning(prompt_for(flow, self.classifier)))
            elif flow.state is KillState.AWAITING_CONFIRM:
                flow = answer_confirm(flow, self.confirmer.confirm(prompt_for(flow, self.classifier)))
            elif flow.state is KillState.EXECUTING:
                flow = execute(flow, self.platform, self.runner)
            else:
                raise InvalidTransition(f"cannot advance from {flow.state.value}")
        return flow

    def kill_process(
        self,
        pid: Any,
        process_name: Optional[str] = None,
        port: Optional[int] = None,
        force_stop: bool = False,
    ) -> KillResult:
        try:
            valid_pid = coerce_pid(pid)
            if valid_pid is not None and not process_name and self.name_resolver is not None:
                process_name = self.name_resolver(valid_pid)
            flow = self.run_flow(begin(pid, process_name, port, force_stop))
        except Exception as e:
            logger.exception("Kill request for PID %r failed unexpectedly", pid)
            self.outcomes[KillState.FAILED.value] += 1
            return KillResult(success=False, error=str(e), user_message=KILL_FAILED_MESSAGE)

        self.outcomes[flow.state.value] += 1
        logger.info("Kill request for PID %r ended %s", pid, flow.state.value)
        if flow.state is KillState.SUCCEEDED and self.on_success is not None:
            try:
                self.on_success(flow.request, flow.result)
            except Exception:
                logger.exception("Post-kill hook failed")
        return flow.result

"""
Reconcile widget mount calls with their later, callback-driven outcomes.

Mounting a widget resolves as soon as it is visible; whatever the end-user
then does arrives through `on_success` / `on_error` / `on_cancel` at an
arbitrary later time. The bridge keeps one session per surface so that late
callbacks can be matched, deduplicated, or suppressed once the surface is
cleared or reused.
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .bus import LogBus, ResultChannel
from .contracts import (
    CardFormParams,
    ResultEnvelope,
    TokenFormParams,
    WidgetKind,
    WidgetParams,
)
from .errors import InteractionCancelled, InteractionError, MountError
from .surfaces import SurfaceRegistry

logger = logging.getLogger(__name__)


MountCall = Callable[[Any], Awaitable[None]]


class SessionState(enum.Enum):
    REQUESTED = "requested"
    MOUNTED = "mounted"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    MOUNT_FAILED = "mount_failed"
    CLEARED = "cleared"


_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.REQUESTED: frozenset(
        {SessionState.MOUNTED, SessionState.MOUNT_FAILED, SessionState.CLEARED}
    ),
    SessionState.MOUNTED: frozenset(
        {
            SessionState.SUCCEEDED,
            SessionState.FAILED,
            SessionState.CANCELLED,
            SessionState.CLEARED,
        }
    ),
}


@dataclass(frozen=True)
class WidgetProfile:
    """Display strings and SDK wiring for one widget kind."""

    kind: WidgetKind
    title: str
    slot: str
    sdk_method: str
    params_cls: type[WidgetParams]
    mounted_message: str
    success_template: str
    error_template: str
    cancel_message: str
    id_path: tuple[str, ...]

    @property
    def form_id(self) -> str:
        return f"axrapay-{self.kind}-form"

    @property
    def loading_text(self) -> str:
        return f"Loading AxraPay {self.title} Form..."


WIDGET_PROFILES: dict[str, WidgetProfile] = {
    "card": WidgetProfile(
        kind="card",
        title="Card",
        slot="card_form",
        sdk_method="mountCardForm",
        params_cls=CardFormParams,
        mounted_message="AxraPay card form mounted successfully! Try making a payment.",
        success_template="Payment successful! ID: {id}",
        error_template="Payment failed: {error}",
        cancel_message="Payment cancelled by user",
        id_path=("id",),
    ),
    "token": WidgetProfile(
        kind="token",
        title="Token",
        slot="token_form",
        sdk_method="mountTokenForm",
        params_cls=TokenFormParams,
        mounted_message="AxraPay token form mounted successfully! Try creating a token.",
        success_template="Token created successfully! ID: {id}",
        error_template="Token creation failed: {error}",
        cancel_message="Token creation cancelled by user",
        id_path=("token", "id"),
    ),
}


def _pluck(value: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(key)
        else:
            value = getattr(value, key, None)
    return value


@dataclass
class WidgetSession:
    """Correlation between one mount request and its eventual outcome."""

    surface_id: str
    widget: WidgetKind
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: SessionState = SessionState.REQUESTED
    created_at: float = field(default_factory=time.monotonic)
    early_outcome: tuple[str, Any] | None = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.state not in _TRANSITIONS

    def transition(self, new_state: SessionState) -> None:
        allowed = _TRANSITIONS.get(self.state, frozenset())
        if new_state not in allowed:
            raise RuntimeError(
                f"Invalid session transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state


class WidgetOutcomeBridge:
    """Turn widget callbacks into envelopes and log entries."""

    def __init__(
        self,
        *,
        logs: LogBus,
        results: ResultChannel,
        surfaces: SurfaceRegistry,
    ) -> None:
        self._logs = logs
        self._results = results
        self._surfaces = surfaces
        self._sessions: dict[str, WidgetSession] = {}

    @property
    def surfaces(self) -> SurfaceRegistry:
        return self._surfaces

    def session(self, surface_id: str) -> WidgetSession | None:
        """Live session on a surface, if any."""
        return self._sessions.get(surface_id)

    def sessions(self) -> list[WidgetSession]:
        return list(self._sessions.values())

    async def mount(
        self,
        surface_id: str,
        widget: WidgetKind,
        mount_call: MountCall,
        params: dict[str, Any],
    ) -> ResultEnvelope:
        """
        Mount a widget into a surface and register its outcome session.

        The returned envelope reflects only the mount call itself.
        """
        profile = WIDGET_PROFILES[widget]
        failure_prefix = f"{profile.title} form mounting failed"
        surface = self._surfaces.get(surface_id)
        if surface is None:
            error = MountError(f"Container with id '{surface_id}' not found")
            logger.warning("%s: %s", failure_prefix, error)
            return ResultEnvelope.fail(
                f"{failure_prefix}: {error}", error=error, data={"error": str(error)}
            )

        self._invalidate(surface_id, reason="replaced")
        mount_point = f"#{surface_id} #{profile.form_id}"
        surface.prepare(mount_point, profile.loading_text)
        session = WidgetSession(surface_id=surface_id, widget=widget)
        self._sessions[surface_id] = session
        logger.debug("Mount session %s requested on %s", session.session_id, surface_id)

        on_success, on_error, on_cancel = self._callbacks(session)
        try:
            widget_params = profile.params_cls(
                selector=mount_point,
                on_success=on_success,
                on_error=on_error,
                on_cancel=on_cancel,
                **params,
            )
            await mount_call(widget_params)
        except Exception as exc:
            error = MountError(str(exc))
            if self._sessions.get(surface_id) is session:
                session.transition(SessionState.MOUNT_FAILED)
                del self._sessions[surface_id]
                surface.show_notice(f"{profile.title} Form Mounting Failed: {error}")
            logger.warning("%s: %s", failure_prefix, exc)
            return ResultEnvelope.fail(
                f"{failure_prefix}: {error}", error=error, data={"error": str(exc)}
            )

        if session.state is SessionState.REQUESTED:
            session.transition(SessionState.MOUNTED)
            surface.placeholder = ""
            logger.info("Mounted %s form on %s (session %s)", widget, surface_id, session.session_id)
            if session.early_outcome is not None:
                kind, value = session.early_outcome
                session.early_outcome = None
                self._deliver(session, kind, value)
        else:
            logger.info(
                "Mount on %s resolved after the session was %s; outcomes will be ignored.",
                surface_id,
                session.state.value,
            )
        return ResultEnvelope.ok(
            profile.mounted_message,
            data={
                "mounted": True,
                "container_id": surface_id,
                "sdk_method": profile.sdk_method,
                "session_id": session.session_id,
            },
        )

    def clear(self, surface_id: str) -> bool:
        """
        Empty a surface and invalidate its pending session.

        Returns False when the surface is unknown.
        """
        surface = self._surfaces.get(surface_id)
        self._invalidate(surface_id, reason="cleared")
        if surface is None:
            return False
        surface.wipe()
        return True

    def reset(self) -> None:
        """Invalidate every pending session, e.g. when the harness is reset."""
        for surface_id in list(self._sessions):
            self.clear(surface_id)

    def _invalidate(self, surface_id: str, *, reason: str) -> None:
        session = self._sessions.pop(surface_id, None)
        if session is None:
            return
        session.transition(SessionState.CLEARED)
        logger.debug("Session %s on %s %s", session.session_id, surface_id, reason)

    def _callbacks(
        self, session: WidgetSession
    ) -> tuple[Callable[[Any], None], Callable[[Any], None], Callable[[], None]]:
        def on_success(result: Any = None) -> None:
            self._deliver(session, "success", result)

        def on_error(error: Any = None) -> None:
            self._deliver(session, "error", error)

        def on_cancel() -> None:
            self._deliver(session, "cancel", None)

        return on_success, on_error, on_cancel

    def _deliver(self, session: WidgetSession, kind: str, value: Any) -> ResultEnvelope | None:
        if self._sessions.get(session.surface_id) is not session:
            logger.debug(
                "Ignoring %s outcome for stale session %s (%s)",
                kind,
                session.session_id,
                session.state.value,
            )
            return None
        if session.state is SessionState.REQUESTED:
            # The client reported before its mount call resolved; hold the first outcome.
            if session.early_outcome is None:
                session.early_outcome = (kind, value)
            return None

        profile = WIDGET_PROFILES[session.widget]
        if kind == "success":
            envelope = ResultEnvelope.ok(
                profile.success_template.format(id=_pluck(value, profile.id_path)), data=value
            )
            session.transition(SessionState.SUCCEEDED)
        elif kind == "error":
            error = InteractionError(str(value))
            envelope = ResultEnvelope.fail(
                profile.error_template.format(error=error), error=error, data={"error": str(value)}
            )
            session.transition(SessionState.FAILED)
        else:
            envelope = ResultEnvelope.fail(profile.cancel_message, error=InteractionCancelled)
            session.transition(SessionState.CANCELLED)
        del self._sessions[session.surface_id]

        surface = self._surfaces.get(session.surface_id)
        if surface is not None:
            severity = "success" if envelope.success else "error"
            details = value if envelope.success else None
            surface.show_panel(envelope.message, severity, details)
        self._logs.record(envelope)
        self._results.publish(f"{profile.slot}.outcome", envelope)
        return envelope


__all__ = [
    "SessionState",
    "WIDGET_PROFILES",
    "WidgetOutcomeBridge",
    "WidgetProfile",
    "WidgetSession",
]

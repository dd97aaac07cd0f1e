"""
Styling Orchestrator

Runs the two-phase "analyze then render" flow and the refinement loop
against a session, moving it through the explicit session states:

    IDLE -> GENERATING -> READY | FAILED
    READY -> REFINING -> READY

Round trips run outside the session lock; state checks and commits happen
under it, so a second request for a busy session is rejected rather than
queued.
"""

import logging
from typing import Callable, Optional

from models.schemas import EncodedImage, Session, SessionState
from .errors import BusyError, SessionNotFoundError, ValidationError
from .gemini_generator import refine_styled_image, synthesize_styled_image
from .session_manager import SessionManager
from .style_advisor import generate_style_suggestions

logger = logging.getLogger(__name__)

SLOTS = ("closeup", "full_body")

GENERATE_FALLBACK = "An unexpected error occurred."
REFINE_FALLBACK = "An unexpected error occurred during refinement."


def error_message(exc: Exception, fallback: str) -> str:
    """User-facing message for a failed round trip"""
    message = str(exc).strip()
    return message or fallback


def progress_notifier(session_id: str, progress_callback: Optional[Callable]) -> Callable:
    """
    Wrap a progress callback so a broken progress channel (e.g. a dropped
    Socket.IO client) is logged and never interrupts the round trip.
    """
    if progress_callback is None:
        return lambda *args, **kwargs: None

    def notify(step, *args, **kwargs):
        try:
            progress_callback(step, *args, **kwargs)
        except Exception:
            logger.warning("Session %s: could not report progress step %r", session_id, step, exc_info=True)

    return notify


class StylingOrchestrator:
    """Sequences the style advisor, image synthesizer and refiner per session"""

    def __init__(self, sessions: SessionManager,
                 advisor: Callable = generate_style_suggestions,
                 synthesizer: Callable = synthesize_styled_image,
                 refiner: Callable = refine_styled_image):
        self.sessions = sessions
        self.advisor = advisor
        self.synthesizer = synthesizer
        self.refiner = refiner

    def _commit(self, session: Session) -> Session:
        try:
            return self.sessions.save(session)
        except SessionNotFoundError:
            # Session was reset while the round trip ran
            logger.warning("Session %s vanished before its result was stored", session.session_id)
            return session

    def set_image(self, session_id: str, slot: str, image: Optional[EncodedImage]) -> Session:
        """
        Replace or clear one of the two input photos.

        Any earlier analysis and styled image are discarded, since they no
        longer match the inputs.

        Raises:
            ValidationError: If `slot` is unknown
            BusyError: If a round trip is running for the session
        """
        if slot not in SLOTS:
            raise ValidationError(f"Unknown image slot: {slot}")

        with self.sessions.locked(session_id) as session:
            if session.is_busy:
                raise BusyError("Please wait for the current request to finish.")
            updated = session.transition(
                SessionState.IDLE,
                suggestion=None,
                styled_image=None,
                error=None,
                **{slot: image},
            )
            return self.sessions.save(updated)

    def set_preferences(self, session_id: str, occasion: str, style_category: str) -> Session:
        with self.sessions.locked(session_id) as session:
            return self.sessions.save(session.update(
                occasion=(occasion or "").strip(),
                style_category=style_category or "",
            ))

    def generate(self, session_id: str, occasion: Optional[str] = None,
                 style_category: Optional[str] = None,
                 progress_callback: Optional[Callable] = None) -> Session:
        """
        Analyze the photos, then render the styled image.

        The synthesizer only runs when the analysis succeeded. A failure in
        either step leaves the session FAILED with the error message.

        Args:
            session_id: Session identifier
            occasion: Occasion text (None keeps the stored value)
            style_category: Style preference (None keeps the stored value)
            progress_callback: Optional fn(step, message, percent)

        Returns:
            Session: The final READY or FAILED record

        Raises:
            ValidationError: If either photo is missing (no state change)
            BusyError: If a round trip is already running
        """
        notify = progress_notifier(session_id, progress_callback)

        with self.sessions.locked(session_id) as session:
            if session.is_busy:
                raise BusyError("A request is already in progress for this session.")
            if not session.has_inputs:
                raise ValidationError("Please upload both a closeup and a full body photo.")

            session = self.sessions.save(session.transition(
                SessionState.GENERATING,
                occasion=session.occasion if occasion is None else occasion.strip(),
                style_category=session.style_category if style_category is None else style_category,
                suggestion=None,
                styled_image=None,
                error=None,
            ))
        logger.info("Session %s: generating", session_id)

        notify("analyzing", "Analyzing your face and body shape...", 10)
        try:
            suggestion = self.advisor(
                session.closeup, session.full_body,
                session.occasion, session.style_category,
            )
        except Exception as e:
            logger.exception("Session %s: style suggestion failed", session_id)
            return self._commit(session.transition(
                SessionState.FAILED, error=error_message(e, GENERATE_FALLBACK)))

        session = self._commit(session.update(suggestion=suggestion))
        notify("rendering", "Generating your styled image...", 50,
               {"suggestion": suggestion.to_dict()})

        try:
            image = self.synthesizer(
                session.closeup, session.full_body, suggestion,
                session.occasion, session.style_category,
            )
        except Exception as e:
            logger.exception("Session %s: image synthesis failed", session_id)
            return self._commit(session.transition(
                SessionState.FAILED, error=error_message(e, GENERATE_FALLBACK)))

        session = self._commit(session.transition(SessionState.READY, styled_image=image))
        logger.info("Session %s: ready", session_id)
        notify("complete", "Your look is ready", 100)
        return session

    def refine(self, session_id: str, instruction: str,
               progress_callback: Optional[Callable] = None) -> Session:
        """
        Apply an edit to the current styled image.

        On failure the previous image and suggestion stay in place and the
        session returns to READY with `error` set.

        Raises:
            ValidationError: If the instruction is blank or there is no
                styled image to edit (no call is made)
            BusyError: If a round trip is already running
        """
        notify = progress_notifier(session_id, progress_callback)

        if not instruction or not instruction.strip():
            raise ValidationError("Please describe the change you want to make.")

        with self.sessions.locked(session_id) as session:
            if session.is_busy:
                raise BusyError("A request is already in progress for this session.")
            if session.styled_image is None or session.closeup is None:
                raise ValidationError("Cannot refine image without a base image and a closeup reference.")

            session = self.sessions.save(session.transition(SessionState.REFINING, error=None))
        logger.info("Session %s: refining", session_id)

        notify("refining", "Updating your image...", 30)
        try:
            image = self.refiner(session.styled_image, instruction, session.closeup)
        except Exception as e:
            logger.exception("Session %s: refinement failed", session_id)
            return self._commit(session.transition(
                SessionState.READY, error=error_message(e, REFINE_FALLBACK)))

        session = self._commit(session.transition(SessionState.READY, styled_image=image))
        notify("complete", "Image updated", 100)
        return session

    def reset(self, session_id: str) -> bool:
        """Discard the session entirely"""
        return self.sessions.delete_session(session_id)

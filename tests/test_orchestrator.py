"""
Tests for services/orchestrator.py — generate/refine flows and state rules.
"""

import threading

import pytest
from unittest.mock import MagicMock

from models.schemas import EncodedImage, SessionState
from services import gemini_generator, style_advisor
from services.errors import (
    BusyError,
    ImageGenerationError,
    ImageRefinementError,
    SessionNotFoundError,
    SuggestionDecodeError,
    ValidationError,
)
from services.orchestrator import StylingOrchestrator
from services.session_manager import SessionManager
from tests.conftest import SUGGESTION_PAYLOAD, FakeClient, image_response, prompt_texts, text_response

STYLED = EncodedImage.from_bytes(b"styled", "image/png")
REFINED = EncodedImage.from_bytes(b"refined", "image/png")


@pytest.fixture
def sessions():
    return SessionManager()


@pytest.fixture
def advisor(suggestion):
    return MagicMock(return_value=suggestion)


@pytest.fixture
def synthesizer():
    return MagicMock(return_value=STYLED)


@pytest.fixture
def refiner():
    return MagicMock(return_value=REFINED)


@pytest.fixture
def orchestrator(sessions, advisor, synthesizer, refiner):
    return StylingOrchestrator(sessions, advisor=advisor, synthesizer=synthesizer, refiner=refiner)


@pytest.fixture
def session_id(sessions, orchestrator, closeup, full_body):
    sid = sessions.create_session()
    orchestrator.set_image(sid, "closeup", closeup)
    orchestrator.set_image(sid, "full_body", full_body)
    return sid


@pytest.fixture
def ready_id(orchestrator, session_id):
    orchestrator.generate(session_id, "", "")
    return session_id


class TestSetImage:

    def test_stores_image(self, sessions, orchestrator, closeup):
        sid = sessions.create_session()
        session = orchestrator.set_image(sid, "closeup", closeup)
        assert session.closeup == closeup
        assert session.full_body is None
        assert sessions.get_session(sid) is session

    def test_unknown_slot(self, sessions, orchestrator, closeup):
        sid = sessions.create_session()
        with pytest.raises(ValidationError):
            orchestrator.set_image(sid, "profile", closeup)

    def test_unknown_session(self, orchestrator, closeup):
        with pytest.raises(SessionNotFoundError):
            orchestrator.set_image("missing", "closeup", closeup)

    def test_reupload_invalidates_results(self, orchestrator, ready_id, closeup):
        session = orchestrator.set_image(ready_id, "full_body", closeup)
        assert session.state is SessionState.IDLE
        assert session.suggestion is None
        assert session.styled_image is None

    def test_removal_clears_slot(self, orchestrator, session_id):
        session = orchestrator.set_image(session_id, "closeup", None)
        assert session.closeup is None
        assert not session.has_inputs


class TestGenerate:

    def test_success(self, orchestrator, session_id, suggestion, advisor, synthesizer):
        session = orchestrator.generate(session_id, "Brunch", "Casual")

        assert session.state is SessionState.READY
        assert session.suggestion == suggestion
        assert session.styled_image == STYLED
        assert session.error is None
        advisor.assert_called_once()
        assert synthesizer.call_args.args[2] == suggestion
        assert synthesizer.call_args.args[3:] == ("Brunch", "Casual")

    def test_requires_both_images(self, sessions, orchestrator, closeup, advisor):
        sid = sessions.create_session()
        orchestrator.set_image(sid, "closeup", closeup)
        before = sessions.get_session(sid)

        with pytest.raises(ValidationError, match="both a closeup and a full body"):
            orchestrator.generate(sid)
        advisor.assert_not_called()
        assert sessions.get_session(sid) is before

    def test_synthesizer_skipped_when_advisor_fails(self, orchestrator, session_id, advisor, synthesizer):
        advisor.side_effect = SuggestionDecodeError(style_advisor.DECODE_ERROR_MESSAGE)

        session = orchestrator.generate(session_id)

        synthesizer.assert_not_called()
        assert session.state is SessionState.FAILED
        assert session.error == style_advisor.DECODE_ERROR_MESSAGE
        assert session.suggestion is None

    def test_synthesis_failure_keeps_suggestion(self, orchestrator, session_id, synthesizer, suggestion):
        synthesizer.side_effect = ImageGenerationError(gemini_generator.GENERATION_FAILED)

        session = orchestrator.generate(session_id)

        assert session.state is SessionState.FAILED
        assert session.error == gemini_generator.GENERATION_FAILED
        assert session.suggestion == suggestion
        assert session.styled_image is None

    def test_error_without_message_uses_fallback(self, orchestrator, session_id, advisor):
        advisor.side_effect = RuntimeError()
        session = orchestrator.generate(session_id)
        assert session.error == "An unexpected error occurred."

    def test_regenerate_clears_previous_results(self, orchestrator, ready_id, advisor):
        seen = {}

        def check_cleared(*args):
            current = orchestrator.sessions.get_session(ready_id)
            seen["state"] = current.state
            seen["image"] = current.styled_image
            raise RuntimeError("quota exceeded")

        advisor.side_effect = check_cleared
        session = orchestrator.generate(ready_id)

        assert seen == {"state": SessionState.GENERATING, "image": None}
        assert session.error == "quota exceeded"

    def test_retry_after_failure(self, orchestrator, session_id, advisor, suggestion):
        advisor.side_effect = [RuntimeError("boom"), suggestion]
        assert orchestrator.generate(session_id).state is SessionState.FAILED
        assert orchestrator.generate(session_id).state is SessionState.READY

    def test_progress_reported_in_order(self, orchestrator, session_id):
        steps = []
        orchestrator.generate(session_id, progress_callback=lambda step, *rest: steps.append(step))
        assert steps == ["analyzing", "rendering", "complete"]

    @pytest.mark.parametrize("failing_step", ["analyzing", "rendering", "complete"])
    def test_broken_progress_channel_does_not_strand_session(self, orchestrator, session_id, closeup,
                                                             failing_step):
        def progress(step, *rest):
            if step == failing_step:
                raise ConnectionError("socket closed")

        session = orchestrator.generate(session_id, progress_callback=progress)

        assert session.state is SessionState.READY
        assert orchestrator.sessions.get_session(session_id).state is SessionState.READY
        assert orchestrator.generate(session_id).state is SessionState.READY
        assert orchestrator.set_image(session_id, "closeup", closeup).state is SessionState.IDLE

    def test_busy_session_rejects_second_generate(self, orchestrator, session_id, advisor, suggestion):
        started = threading.Event()
        release = threading.Event()

        def slow_advisor(*args):
            started.set()
            release.wait(timeout=5)
            return suggestion

        advisor.side_effect = slow_advisor
        worker = threading.Thread(target=orchestrator.generate, args=(session_id,))
        worker.start()
        try:
            assert started.wait(timeout=5)
            with pytest.raises(BusyError):
                orchestrator.generate(session_id)
            with pytest.raises(BusyError):
                orchestrator.set_image(session_id, "closeup", None)
        finally:
            release.set()
            worker.join(timeout=5)

        assert orchestrator.sessions.get_session(session_id).state is SessionState.READY


class TestRefine:

    def test_success_replaces_image(self, orchestrator, ready_id, refiner, closeup):
        session = orchestrator.refine(ready_id, "Change shirt to blue")

        assert session.state is SessionState.READY
        assert session.styled_image == REFINED
        refiner.assert_called_once_with(STYLED, "Change shirt to blue", closeup)

    def test_chains_previous_result(self, orchestrator, ready_id, refiner):
        orchestrator.refine(ready_id, "Add a watch")
        orchestrator.refine(ready_id, "Make it night")
        assert refiner.call_args_list[1].args[0] == REFINED

    @pytest.mark.parametrize("instruction", ["", "   ", "\t\n"])
    def test_blank_instruction_rejected(self, orchestrator, ready_id, refiner, instruction):
        before = orchestrator.sessions.get_session(ready_id)
        with pytest.raises(ValidationError):
            orchestrator.refine(ready_id, instruction)
        refiner.assert_not_called()
        assert orchestrator.sessions.get_session(ready_id) is before

    def test_requires_styled_image(self, orchestrator, session_id, refiner):
        with pytest.raises(ValidationError, match="Cannot refine"):
            orchestrator.refine(session_id, "Add a hat")
        refiner.assert_not_called()

    def test_failure_keeps_last_good_image(self, orchestrator, ready_id, refiner, suggestion):
        refiner.side_effect = ImageRefinementError(gemini_generator.REFINEMENT_FAILED)

        session = orchestrator.refine(ready_id, "Add a hat")

        assert session.state is SessionState.READY
        assert session.styled_image == STYLED
        assert session.suggestion == suggestion
        assert session.error == gemini_generator.REFINEMENT_FAILED

    def test_failure_fallback_message(self, orchestrator, ready_id, refiner):
        refiner.side_effect = RuntimeError("")
        session = orchestrator.refine(ready_id, "Add a hat")
        assert session.error == "An unexpected error occurred during refinement."

    def test_broken_progress_channel_keeps_result(self, orchestrator, ready_id):
        def progress(*args):
            raise ConnectionError("socket closed")

        session = orchestrator.refine(ready_id, "Add a hat", progress_callback=progress)

        assert session.state is SessionState.READY
        assert session.styled_image == REFINED
        assert orchestrator.sessions.get_session(ready_id).styled_image == REFINED

    def test_success_clears_previous_error(self, orchestrator, ready_id, refiner):
        refiner.side_effect = [RuntimeError("boom"), REFINED]
        orchestrator.refine(ready_id, "Add a hat")
        session = orchestrator.refine(ready_id, "Add a hat")
        assert session.error is None
        assert session.styled_image == REFINED


def test_reset_discards_session(orchestrator, ready_id):
    assert orchestrator.reset(ready_id)
    assert orchestrator.sessions.get_session(ready_id) is None


def test_streetwear_scenario_end_to_end(sessions, closeup, full_body):
    """Blank occasion + Streetwear through the real services with fake clients."""
    import json

    advisor_client = FakeClient(response=text_response(json.dumps(SUGGESTION_PAYLOAD)))
    image_client = FakeClient(response=image_response(b"ABC", "image/png"))

    orchestrator = StylingOrchestrator(
        sessions,
        advisor=lambda *args: style_advisor.generate_style_suggestions(*args, client=advisor_client),
        synthesizer=lambda *args: gemini_generator.synthesize_styled_image(*args, client=image_client),
    )
    sid = sessions.create_session()
    orchestrator.set_image(sid, "closeup", closeup)
    orchestrator.set_image(sid, "full_body", full_body)

    session = orchestrator.generate(sid, occasion="", style_category="Streetwear")

    assert session.state is SessionState.READY
    assert session.styled_image.data_uri == "data:image/png;base64,QUJD"

    analysis_prompt = prompt_texts(advisor_client.calls[0])[0]
    assert "Not specified" in analysis_prompt

    render_prompt = prompt_texts(image_client.calls[0])[0]
    assert "Streetwear" in render_prompt
    for key in ("outfit", "sunglasses", "accessories", "shoes"):
        assert SUGGESTION_PAYLOAD[key]["description"] in render_prompt


def test_preferences_used_when_generate_omits_them(orchestrator, session_id, advisor):
    session = orchestrator.set_preferences(session_id, "  Rooftop party ", "Vintage")
    assert session.occasion == "Rooftop party"
    assert session.state is SessionState.IDLE

    orchestrator.generate(session_id)
    assert advisor.call_args.args[2:] == ("Rooftop party", "Vintage")

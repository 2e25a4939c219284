"""Unit tests for DecoderSession result retrieval and search configuration."""

import numpy as np
import pytest

from matilda_sphinx.decoder import (
    LifecycleError,
    NoHypothesisError,
    ProcessingError,
    Result,
    SessionState,
    UnknownSearchError,
)


def speech(n=1600):
    return (np.sin(np.arange(n) / 8.0) * 8000).astype(np.int16)


def decode(session, samples=None):
    session.start_utt()
    session.process_raw(speech() if samples is None else samples)
    session.end_utt()


class TestGetHypothesis:
    """Test best hypothesis retrieval."""

    def test_returns_result(self, session, fake_engine):
        fake_engine.hyp = ("go forward ten meters", -1234, -567)
        decode(session)
        result = session.get_hypothesis()
        assert result == Result(text="go forward ten meters", score=-1234, prob=-567)

    def test_before_any_audio(self, session, fake_engine):
        fake_engine.hyp = ("stale", -1, 0)
        with pytest.raises(NoHypothesisError, match="no audio processed"):
            session.get_hypothesis()
        assert "hypothesis" not in fake_engine.calls

    def test_silence_yields_no_hypothesis(self, session, fake_engine):
        fake_engine.hyp = None
        decode(session, np.zeros(1600, dtype=np.int16))
        with pytest.raises(NoHypothesisError):
            session.get_hypothesis()

    def test_empty_text_is_no_hypothesis(self, session, fake_engine):
        fake_engine.hyp = ("", 0, 0)
        decode(session)
        with pytest.raises(NoHypothesisError):
            session.get_hypothesis()

    def test_partial_hypothesis_while_streaming(self, session, fake_engine):
        fake_engine.hyp = ("go forward", -10, 0)
        session.start_stream()
        session.process_raw(speech())
        assert session.get_hypothesis().text == "go forward"
        assert session.state == SessionState.STREAMING


class TestNBest:
    """Test lazy N-best retrieval and iterator cleanup."""

    @pytest.fixture
    def decoded(self, session, fake_engine):
        fake_engine.nbest_entries = [("go forward ten meters", -100), ("go forward ten meter", -120), ("go for ten meters", -150)]
        decode(session)
        return session

    def test_best_first_order(self, decoded, fake_engine):
        results = decoded.get_nbest(10)
        assert [r.text for r in results] == ["go forward ten meters", "go forward ten meter", "go for ten meters"]
        assert [r.score for r in results] == [-100, -120, -150]
        assert all(r.prob == 0 for r in results)
        assert fake_engine.nbest_closed == 1

    def test_truncates_at_limit(self, decoded, fake_engine):
        results = decoded.get_nbest(2)
        assert len(results) == 2
        assert fake_engine.nbest_yielded == 2
        assert fake_engine.nbest_closed == 1

    def test_stops_at_empty_text(self, session, fake_engine):
        fake_engine.nbest_entries = [("hello", -1), ("", 0), ("never reached", -5)]
        decode(session)
        assert [r.text for r in session.get_nbest(5)] == ["hello"]
        assert fake_engine.nbest_yielded == 2
        assert fake_engine.nbest_closed == 1

    @pytest.mark.parametrize("limit", [1, 2, 3, 4, 10])
    def test_never_exceeds_limit_or_returns_empty(self, decoded, limit):
        results = decoded.get_nbest(limit)
        assert len(results) <= limit
        assert all(r.text for r in results)

    def test_zero_limit_does_not_touch_engine(self, decoded, fake_engine):
        assert decoded.get_nbest(0) == []
        assert decoded.get_nbest(-3) == []
        assert "nbest" not in fake_engine.calls

    def test_nothing_before_audio(self, session, fake_engine):
        fake_engine.nbest_entries = [("stale", -1)]
        assert session.get_nbest(3) == []
        assert "nbest" not in fake_engine.calls

    def test_consumer_break_closes_iterator(self, decoded, fake_engine):
        nbest = decoded.iter_nbest(10)
        first = next(nbest)
        assert first.text == "go forward ten meters"
        assert fake_engine.nbest_closed == 0
        nbest.close()
        assert fake_engine.nbest_closed == 1

    def test_error_mid_iteration_closes_iterator(self, session, fake_engine):
        fake_engine.nbest_entries = [("hello", -1), RuntimeError("lattice lost"), ("world", -3)]
        decode(session)
        nbest = session.iter_nbest(10)
        assert next(nbest).text == "hello"
        with pytest.raises(RuntimeError, match="lattice lost"):
            next(nbest)
        assert fake_engine.nbest_yielded == 2
        assert fake_engine.nbest_closed == 1

    def test_iterator_is_not_restartable(self, decoded):
        nbest = decoded.iter_nbest(10)
        assert len(list(nbest)) == 3
        assert list(nbest) == []


class TestProcessFullUtterance:
    """Test the composite single-utterance decode."""

    def test_best_then_alternatives(self, session, fake_engine):
        fake_engine.utterance_hyps = [("go forward ten meters", -100, -3)]
        fake_engine.nbest_entries = [("go forward ten meters", -100), ("go forward ten meter", -120), ("go for", -200)]
        results = session.process_full_utterance(speech(), nbest_count=3)

        assert results[0] == Result("go forward ten meters", -100, -3)
        assert [r.text for r in results[1:]] == ["go forward ten meters", "go forward ten meter"]
        assert ("process_raw", 1600, False, True) in fake_engine.calls
        assert session.state == SessionState.IDLE

    def test_first_element_matches_get_hypothesis(self, session, fake_engine):
        fake_engine.utterance_hyps = [("hello world", -42, -7)]
        results = session.process_full_utterance(speech(), nbest_count=1)
        assert results == [session.get_hypothesis()]

    def test_start_failure_is_fail_fast(self, session, fake_engine):
        fake_engine.statuses["start_utt"] = -1
        with pytest.raises(LifecycleError) as exc_info:
            session.process_full_utterance(speech(), nbest_count=3)
        assert exc_info.value.partial_results == []
        assert not any(isinstance(call, tuple) for call in fake_engine.calls)

    def test_processing_failure_leaves_utterance_open(self, session, fake_engine):
        fake_engine.process_status = -1
        with pytest.raises(ProcessingError) as exc_info:
            session.process_full_utterance(speech(), nbest_count=3)
        assert exc_info.value.partial_results == []
        assert "end_utt" not in fake_engine.calls
        assert session.state == SessionState.IN_UTTERANCE

    def test_no_hypothesis_is_raised(self, session, fake_engine):
        with pytest.raises(NoHypothesisError) as exc_info:
            session.process_full_utterance(np.zeros(1600, dtype=np.int16), nbest_count=3)
        assert exc_info.value.partial_results == []
        assert session.state == SessionState.IDLE

    def test_empty_audio_rejected_before_start(self, session, fake_engine):
        with pytest.raises(ValueError):
            session.process_full_utterance(b"", nbest_count=1)
        assert fake_engine.calls == []
        assert session.state == SessionState.IDLE


class TestSearches:
    """Test grammar/keyphrase registration and search selection."""

    def test_initial_search_is_deterministic(self, fake_engine_cls):
        from matilda_sphinx.decoder import DecoderSession

        names = set()
        for _ in range(3):
            engine = fake_engine_cls()
            with DecoderSession(engine_factory=engine.bind) as decoder:
                names.add(decoder.current_search())
        assert names == {"_default"}

    def test_load_grammar_and_select(self, session, fake_engine):
        grammar = "#JSGF V1.0; grammar goforward; public <move> = go forward;"
        session.load_grammar("goforward", grammar)
        session.select_search("goforward")
        assert fake_engine.grammars == {"goforward": grammar}
        assert session.current_search() == "goforward"
        assert "goforward" in session.searches

    def test_load_grammar_replaces_definition(self, session, fake_engine):
        session.load_grammar("g", "#JSGF V1.0; grammar a; public <a> = a;")
        session.load_grammar("g", "#JSGF V1.0; grammar b; public <b> = b;")
        assert fake_engine.grammars["g"].startswith("#JSGF V1.0; grammar b")

    def test_load_keyphrase_and_select(self, session, fake_engine):
        session.load_keyphrase("wakeup", "oh mighty computer")
        session.select_search("wakeup")
        assert fake_engine.keyphrases == {"wakeup": "oh mighty computer"}
        assert session.current_search() == "wakeup"

    def test_switch_back_to_initial_search(self, session):
        session.load_keyphrase("wakeup", "oh mighty computer")
        session.select_search("wakeup")
        session.select_search("_default")
        assert session.current_search() == "_default"

    def test_unknown_search_raises(self, session, fake_engine):
        with pytest.raises(UnknownSearchError) as exc_info:
            session.select_search("missing")
        assert isinstance(exc_info.value, KeyError)
        assert "missing" in str(exc_info.value)
        assert ("set_search", "missing") not in fake_engine.calls
        assert session.current_search() == "_default"

    def test_empty_name_rejected(self, session):
        with pytest.raises(ValueError):
            session.load_grammar("", "#JSGF V1.0;")
        with pytest.raises(ValueError):
            session.load_keyphrase("", "hello")


class TestVoiceActivity:
    """Test the voice activity flag."""

    def test_false_before_audio(self, session, fake_engine):
        fake_engine._in_speech = True
        assert session.is_speech_active() is False

    def test_follows_engine_flag(self, session, fake_engine):
        fake_engine.speech_flags = [True, False]
        session.start_utt()
        session.process_raw(speech())
        assert session.is_speech_active() is True
        session.process_raw(np.zeros(1600, dtype=np.int16))
        assert session.is_speech_active() is False

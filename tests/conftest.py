"""Shared fixtures: a scriptable in-memory decoder engine.

FakeEngine implements the DecoderEngine contract without native code. Tests
script its status codes, hypotheses and voice activity, then inspect
``calls`` to see what the session asked of the engine.
"""

import pytest

from matilda_sphinx.decoder import DecoderSession


class FakeEngine:
    """In-memory DecoderEngine."""

    def __init__(self, initial_search="_default"):
        self.options = None
        self.calls = []
        self.fed = []
        self.statuses = {"start_utt": 0, "end_utt": 0, "start_stream": 0}
        self.process_status = None
        self.hyp = None
        # Consumed one per end_utt(); each becomes the current hypothesis
        self.utterance_hyps = []
        self.nbest_entries = []
        self.nbest_yielded = 0
        self.nbest_closed = 0
        # Consumed one per process_raw(); the voice activity flag afterwards
        self.speech_flags = []
        self._in_speech = False
        self.search = initial_search
        self.grammars = {}
        self.keyphrases = {}
        self.released = 0

    def bind(self, options):
        self.options = options
        return self

    def start_utt(self):
        self.calls.append("start_utt")
        return self.statuses["start_utt"]

    def end_utt(self):
        self.calls.append("end_utt")
        status = self.statuses["end_utt"]
        if status == 0 and self.utterance_hyps:
            self.hyp = self.utterance_hyps.pop(0)
        return status

    def start_stream(self):
        self.calls.append("start_stream")
        return self.statuses["start_stream"]

    def process_raw(self, pcm, no_search, full_utt):
        self.calls.append(("process_raw", len(pcm) // 2, no_search, full_utt))
        self.fed.append(pcm)
        if self.speech_flags:
            self._in_speech = self.speech_flags.pop(0)
        if self.process_status is not None:
            return self.process_status
        return len(pcm) // 2

    def hypothesis(self):
        self.calls.append("hypothesis")
        return self.hyp

    def nbest(self):
        self.calls.append("nbest")

        def entries():
            try:
                for entry in self.nbest_entries:
                    self.nbest_yielded += 1
                    if isinstance(entry, Exception):
                        raise entry
                    yield entry
            finally:
                self.nbest_closed += 1

        return entries()

    def set_jsgf_string(self, name, grammar):
        self.grammars[name] = grammar

    def set_keyphrase(self, name, phrase):
        self.keyphrases[name] = phrase

    def set_search(self, name):
        self.calls.append(("set_search", name))
        self.search = name

    def current_search(self):
        return self.search

    def in_speech(self):
        return self._in_speech

    def release(self):
        self.released += 1


@pytest.fixture
def fake_engine_cls():
    """The FakeEngine class, for tests that need several engines."""
    return FakeEngine


@pytest.fixture
def fake_engine():
    """A fresh FakeEngine."""
    return FakeEngine()


@pytest.fixture
def session(fake_engine):
    """An IDLE DecoderSession driving fake_engine."""
    decoder = DecoderSession(hmm="/models/en-us", dictionary="/models/en.dict", engine_factory=fake_engine.bind)
    yield decoder
    decoder.release()

"""Continuous decoding of a chunked audio stream.

Utterances are cut where the engine's voice activity flag falls from speech to
silence. Acoustic context carries over between utterances because the
session stays in streaming mode for the whole feed.
"""

import logging
from collections.abc import Iterable, Iterator

from ..decoder.session import AudioInput, DecoderSession
from ..decoder.types import DecoderError, NoHypothesisError, Result

logger = logging.getLogger(__name__)


def _close_utterance(session: DecoderSession) -> Result | None:
    session.end_utt()
    try:
        return session.get_hypothesis()
    except NoHypothesisError:
        return None


def segment_stream(session: DecoderSession, chunks: Iterable[AudioInput]) -> Iterator[Result]:
    """Decode chunks continuously, yielding one result per spoken utterance.

    The session must be IDLE. It is returned to IDLE when the generator
    finishes, fails or is closed early. Empty chunks are skipped.
    """
    session.start_stream()
    in_speech = False
    utterances = 0
    try:
        for chunk in chunks:
            if len(chunk) == 0:
                continue
            session.process_raw(chunk)
            speech_now = session.is_speech_active()
            if in_speech and not speech_now:
                result = _close_utterance(session)
                if result is not None:
                    utterances += 1
                    yield result
            in_speech = speech_now

        if session.utterance_open:
            result = _close_utterance(session)
            if result is not None:
                utterances += 1
                yield result
    except BaseException:
        # Keep the original failure; a cleanup error here would replace it
        if not session.is_released:
            try:
                session.end_stream()
            except DecoderError as e:
                logger.warning(f"Could not end stream after failure: {e}")
        raise
    else:
        if not session.is_released:
            session.end_stream()
    finally:
        logger.info(f"Stream finished with {utterances} utterance(s)")


__all__ = ["segment_stream"]

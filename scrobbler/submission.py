"""
Now-playing and scrobble submission: request parameters and response parsing.

Builds the signature-mode parameter sets and token-mode JSON bodies, enforces
the batch ceiling before any request exists, and turns both response shapes
into typed results whose outcomes line up index for index with the
submitted records.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import (
    BatchTooLargeError,
    EmptyBatchError,
    InvalidFieldError,
    InvalidResponseError,
)
from .tracks import NowPlaying, Scrobble


logger = logging.getLogger('scrobbler.submission')

MAX_BATCH_SIZE = 50

NOW_PLAYING_METHOD = 'track.updateNowPlaying'
SCROBBLE_METHOD = 'track.scrobble'
NOW_PLAYING_PATH = 'now'
SCROBBLE_PATH = 'scrob'


class IgnoredReason(enum.Enum):
    """Why the service did not count a submitted scrobble."""

    NONE = 0
    ARTIST_IGNORED = 1
    TRACK_IGNORED = 2
    TIMESTAMP_TOO_OLD = 3
    TIMESTAMP_TOO_NEW = 4
    DAILY_LIMIT_EXCEEDED = 5
    UNKNOWN = -1

    @classmethod
    def parse(cls, value: Any) -> 'IgnoredReason':
        """Accept numeric codes (int or str) and lowercase names."""
        if value is None or value == '':
            return cls.NONE
        if isinstance(value, str) and not value.strip().lstrip('-').isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                return cls.UNKNOWN
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UNKNOWN


@dataclass(frozen=True)
class CorrectedValue:
    """A track field echoed back by the service, possibly auto-corrected."""

    value: Optional[str]
    corrected: bool = False


@dataclass(frozen=True)
class ScrobbleOutcome:
    accepted: bool
    ignored_reason: Optional[IgnoredReason]
    ignored_message: Optional[str]
    artist: CorrectedValue
    track: CorrectedValue
    album: CorrectedValue
    album_artist: CorrectedValue
    timestamp: Optional[int]


@dataclass(frozen=True)
class ScrobbleResult:
    """Aggregate counts plus one outcome per submitted scrobble, in order."""

    accepted_count: int
    ignored_count: int
    outcomes: List[ScrobbleOutcome]

    def __len__(self):
        return len(self.outcomes)

    def __iter__(self):
        return iter(self.outcomes)

    def __getitem__(self, index):
        return self.outcomes[index]

    @property
    def ignored(self) -> List[ScrobbleOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.accepted]


@dataclass(frozen=True)
class NowPlayingResult:
    artist: CorrectedValue
    track: CorrectedValue
    album: CorrectedValue
    album_artist: CorrectedValue
    ignored_reason: Optional[IgnoredReason] = None
    ignored_message: Optional[str] = None


# Requests

def check_now_playing(record) -> NowPlaying:
    if not isinstance(record, NowPlaying):
        raise InvalidFieldError(
            f"Expected a NowPlaying record, got {type(record).__name__}",
            field='record'
        )
    return record


def check_batch(records) -> List[Scrobble]:
    """
    Enforce 1 <= len(records) <= MAX_BATCH_SIZE.

    Args:
        records: A Scrobble or a sequence of Scrobble records

    Returns:
        The records as a list, in submission order

    Raises:
        EmptyBatchError: If no records were given
        BatchTooLargeError: If more than MAX_BATCH_SIZE records were given
        InvalidFieldError: If an item is not a Scrobble
    """
    if isinstance(records, Scrobble):
        records = [records]
    records = list(records or [])

    if not records:
        raise EmptyBatchError()
    if len(records) > MAX_BATCH_SIZE:
        raise BatchTooLargeError(len(records), MAX_BATCH_SIZE)

    for index, record in enumerate(records):
        if not isinstance(record, Scrobble):
            raise InvalidFieldError(
                f"Item {index} is a {type(record).__name__}, expected a Scrobble",
                field=f"records[{index}]"
            )

    return records


def build_now_playing_params(record: NowPlaying) -> Dict[str, str]:
    params = {'method': NOW_PLAYING_METHOD}
    params.update(check_now_playing(record).to_params())
    return params


def build_scrobble_params(records: Sequence[Scrobble]) -> Dict[str, str]:
    """Build the indexed track.scrobble parameters (artist[0], track[0], ...)."""
    params = {'method': SCROBBLE_METHOD}
    for index, record in enumerate(check_batch(records)):
        params.update(record.to_params(index))
    return params


def build_now_playing_json(record: NowPlaying) -> Dict[str, Any]:
    return check_now_playing(record).to_json()


def build_scrobble_json(records: Sequence[Scrobble]) -> List[Dict[str, Any]]:
    return [record.to_json() for record in check_batch(records)]


# Responses

def _to_int(value: Any, what: str, data: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidResponseError(f"Invalid {what} in scrobble response: {value!r}", response=data) from e


def _echoed(item: Dict[str, Any], key: str, fallback: Optional[str]) -> CorrectedValue:
    """Read a Last.fm ``{"corrected": "0", "#text": "..."}`` field."""
    field = item.get(key)
    if isinstance(field, dict):
        value = field.get('#text') or None
        return CorrectedValue(value, str(field.get('corrected', '0')) == '1')
    if isinstance(field, str) and field:
        return CorrectedValue(field)
    return CorrectedValue(fallback)


def _lastfm_outcome(item: Any, record, data: Any = None) -> ScrobbleOutcome:
    if not isinstance(item, dict):
        raise InvalidResponseError(f"Invalid scrobble item: {item!r}", response=data)

    ignored = item.get('ignoredMessage') or {}
    if not isinstance(ignored, dict):
        ignored = {'code': ignored}
    reason = IgnoredReason.parse(ignored.get('code'))
    accepted = reason is IgnoredReason.NONE

    timestamp = item.get('timestamp', getattr(record, 'timestamp', None))
    try:
        timestamp = int(timestamp) if timestamp is not None else None
    except (TypeError, ValueError):
        timestamp = getattr(record, 'timestamp', None)

    return ScrobbleOutcome(
        accepted=accepted,
        ignored_reason=None if accepted else reason,
        ignored_message=None if accepted else (ignored.get('#text') or None),
        artist=_echoed(item, 'artist', record.artist),
        track=_echoed(item, 'track', record.track),
        album=_echoed(item, 'album', record.album),
        album_artist=_echoed(item, 'albumArtist', record.album_artist),
        timestamp=timestamp,
    )


def _token_outcome(item: Any, record) -> ScrobbleOutcome:
    if isinstance(item, bool):
        item = {'accepted': item}
    if not isinstance(item, dict):
        raise InvalidResponseError(f"Invalid scrobble outcome: {item!r}", response=item)

    reason = IgnoredReason.parse(item.get('ignored_reason'))
    accepted = bool(item.get('accepted', reason is IgnoredReason.NONE))
    if not accepted and reason is IgnoredReason.NONE:
        reason = IgnoredReason.UNKNOWN

    return ScrobbleOutcome(
        accepted=accepted,
        ignored_reason=None if accepted else reason,
        ignored_message=None if accepted else (item.get('ignored_message') or None),
        artist=CorrectedValue(item.get('artist') or record.artist, bool(item.get('artist_corrected'))),
        track=CorrectedValue(item.get('track') or record.track, bool(item.get('track_corrected'))),
        album=CorrectedValue(item.get('album') or record.album),
        album_artist=CorrectedValue(item.get('album_artist') or record.album_artist),
        timestamp=record.timestamp,
    )


def _submitted_outcome(record) -> ScrobbleOutcome:
    return ScrobbleOutcome(
        accepted=True,
        ignored_reason=None,
        ignored_message=None,
        artist=CorrectedValue(record.artist),
        track=CorrectedValue(record.track),
        album=CorrectedValue(record.album),
        album_artist=CorrectedValue(record.album_artist),
        timestamp=record.timestamp,
    )


def _as_list(items: Any) -> List[Any]:
    # Last.fm returns a bare object instead of a list for single-track batches
    if items is None:
        return []
    if isinstance(items, list):
        return items
    return [items]


def parse_scrobble_response(data: Any, records: Sequence[Scrobble]) -> ScrobbleResult:
    """
    Parse a scrobble response into aggregate counts and ordered outcomes.

    Understands the Last.fm shape
    ``{"scrobbles": {"@attr": {"accepted", "ignored"}, "scrobble": [...]}}``
    and the token server shape
    ``{"accepted", "ignored", "scrobbles": [{"accepted", "ignored_reason"}]}``.
    An empty token server body means every scrobble was accepted.

    Args:
        data: Decoded JSON body (None for an empty body)
        records: The submitted batch, in submission order

    Returns:
        ScrobbleResult with exactly len(records) outcomes

    Raises:
        InvalidResponseError: If the body is malformed or its counts do not
            add up to the submitted batch
    """
    records = list(records)
    expected = len(records)

    if not data:
        outcomes = [_submitted_outcome(record) for record in records]
        return ScrobbleResult(accepted_count=expected, ignored_count=0, outcomes=outcomes)

    if not isinstance(data, dict):
        raise InvalidResponseError("Scrobble response is not a JSON object", response=data)

    scrobbles = data.get('scrobbles')

    if isinstance(scrobbles, dict):
        attr = scrobbles.get('@attr') or {}
        if not isinstance(attr, dict):
            raise InvalidResponseError("Scrobble response @attr is not an object", response=data)
        items = _as_list(scrobbles.get('scrobble'))
        accepted_count = _to_int(attr.get('accepted'), 'accepted count', data)
        ignored_count = _to_int(attr.get('ignored'), 'ignored count', data)
        if len(items) != expected:
            raise InvalidResponseError(
                f"Scrobble response has {len(items)} items for {expected} submitted scrobbles",
                response=data
            )
        outcomes = [_lastfm_outcome(item, record, data) for item, record in zip(items, records)]

    elif isinstance(scrobbles, list) or scrobbles is None:
        items = scrobbles or []
        if items:
            if len(items) != expected:
                raise InvalidResponseError(
                    f"Scrobble response has {len(items)} items for {expected} submitted scrobbles",
                    response=data
                )
            outcomes = [_token_outcome(item, record) for item, record in zip(items, records)]
        else:
            outcomes = [_submitted_outcome(record) for record in records]

        accepted_count = _to_int(
            data.get('accepted', sum(1 for outcome in outcomes if outcome.accepted)),
            'accepted count', data
        )
        ignored_count = _to_int(
            data.get('ignored', sum(1 for outcome in outcomes if not outcome.accepted)),
            'ignored count', data
        )

    else:
        raise InvalidResponseError("Scrobble response has no scrobbles", response=data)

    if accepted_count + ignored_count != expected:
        raise InvalidResponseError(
            f"Scrobble response counts ({accepted_count} accepted, {ignored_count} ignored) "
            f"do not match {expected} submitted scrobbles",
            response=data
        )

    itemized_accepted = sum(1 for outcome in outcomes if outcome.accepted)
    if itemized_accepted != accepted_count:
        raise InvalidResponseError(
            f"Scrobble response reports {accepted_count} accepted but itemizes {itemized_accepted}",
            response=data
        )

    logger.debug(
        "Parsed scrobble response",
        extra={
            'submitted': expected,
            'accepted': accepted_count,
            'ignored': ignored_count,
        }
    )

    return ScrobbleResult(
        accepted_count=accepted_count,
        ignored_count=ignored_count,
        outcomes=outcomes,
    )


def parse_now_playing_response(data: Any, record: NowPlaying) -> NowPlayingResult:
    """
    Parse a now-playing response into the echoed track fields.

    Both ``{"nowplaying": {...}}`` (Last.fm) and an empty or flat JSON
    object (token server) are accepted; missing fields echo the record.
    """
    if not data:
        item = {}
    elif isinstance(data, dict):
        item = data.get('nowplaying', data)
        if not isinstance(item, dict):
            raise InvalidResponseError("Now playing response is malformed", response=data)
    else:
        raise InvalidResponseError("Now playing response is not a JSON object", response=data)

    ignored = item.get('ignoredMessage')
    if isinstance(ignored, dict):
        reason = IgnoredReason.parse(ignored.get('code'))
        message = ignored.get('#text') or None
    else:
        reason = IgnoredReason.parse(item.get('ignored_reason'))
        message = item.get('ignored_message') or None

    ignored_reason = None if reason is IgnoredReason.NONE else reason

    return NowPlayingResult(
        artist=_echoed(item, 'artist', record.artist),
        track=_echoed(item, 'track', record.track),
        album=_echoed(item, 'album', record.album),
        album_artist=_echoed(item, 'albumArtist', record.album_artist),
        ignored_reason=ignored_reason,
        ignored_message=message if ignored_reason else None,
    )

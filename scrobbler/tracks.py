"""
Track records submitted to the scrobbling service.

NowPlaying and Scrobble are immutable. Optional fields use None for
"absent", so an omitted duration is never confused with a zero duration.
Use the with_* methods to derive a record with an extra field set.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .exceptions import InvalidFieldError, MissingFieldError


# Last.fm parameter names for each optional field.
LASTFM_FIELD_NAMES = {
    'album': 'album',
    'album_artist': 'albumArtist',
    'track_number': 'trackNumber',
    'duration': 'duration',
    'mbid': 'mbid',
}


def _check_required_text(field: str, value: Any) -> None:
    if not isinstance(value, str):
        raise InvalidFieldError(f"'{field}' must be a string", field=field, value=value)
    if not value.strip():
        raise MissingFieldError(field)


def _check_optional_text(field: str, value: Any) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise InvalidFieldError(f"'{field}' must be a string", field=field, value=value)
    if not value.strip():
        raise InvalidFieldError(
            f"'{field}' cannot be empty; leave it unset instead",
            field=field,
            value=value
        )


def _check_positive_int(field: str, value: Any) -> None:
    if value is None:
        return
    # bool is an int subclass but never a valid length or position
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidFieldError(
            f"'{field}' must be a positive integer",
            field=field,
            value=value
        )


class TrackRecord:
    """Behaviour shared by NowPlaying and Scrobble."""

    def __post_init__(self):
        self._validate()

    def _validate(self) -> None:
        _check_required_text('artist', self.artist)
        _check_required_text('track', self.track)
        _check_optional_text('album', self.album)
        _check_optional_text('album_artist', self.album_artist)
        _check_optional_text('mbid', self.mbid)
        _check_optional_text('player', self.player)
        _check_positive_int('duration', self.duration)
        _check_positive_int('track_number', self.track_number)

    def with_album(self, album: str):
        return replace(self, album=album)

    def with_duration(self, duration: int):
        """Set the track length in seconds."""
        return replace(self, duration=duration)

    def with_album_artist(self, album_artist: str):
        return replace(self, album_artist=album_artist)

    def with_track_number(self, track_number: int):
        return replace(self, track_number=track_number)

    def with_mbid(self, mbid: str):
        return replace(self, mbid=mbid)

    def with_player(self, player: str):
        """Name the reporting player; sent to token servers only."""
        return replace(self, player=player)

    def _present_fields(self) -> Dict[str, Any]:
        fields = {
            'artist': self.artist,
            'track': self.track,
            'album': self.album,
            'album_artist': self.album_artist,
            'track_number': self.track_number,
            'duration': self.duration,
            'mbid': self.mbid,
        }
        return {name: value for name, value in fields.items() if value is not None}

    def to_params(self, index: Optional[int] = None) -> Dict[str, str]:
        """
        Build the signature-mode parameters for this record.

        Args:
            index: Position in a scrobble batch; keys become ``name[index]``

        Returns:
            Dictionary of Last.fm parameter names to string values, without
            entries for absent optional fields
        """
        params = {
            LASTFM_FIELD_NAMES.get(name, name): str(value)
            for name, value in self._present_fields().items()
        }

        if index is None:
            return params
        return {f"{key}[{index}]": value for key, value in params.items()}

    def to_json(self) -> Dict[str, Any]:
        """Build the token-mode JSON object, without absent optional fields."""
        fields = self._present_fields()
        # Last.fm has no player parameter, so it never reaches to_params()
        if self.player is not None:
            fields['player'] = self.player
        return fields


@dataclass(frozen=True)
class NowPlaying(TrackRecord):
    """A transient "currently playing" update for a single track."""

    artist: str
    track: str
    album: Optional[str] = None
    duration: Optional[int] = None
    album_artist: Optional[str] = None
    track_number: Optional[int] = None
    mbid: Optional[str] = None
    player: Optional[str] = None


@dataclass(frozen=True)
class Scrobble(TrackRecord):
    """
    A completed play of a track.

    ``timestamp`` is the Unix time (seconds) the track started playing. It is
    always supplied by the caller.
    """

    artist: str
    track: str
    timestamp: int
    album: Optional[str] = None
    duration: Optional[int] = None
    album_artist: Optional[str] = None
    track_number: Optional[int] = None
    mbid: Optional[str] = None
    player: Optional[str] = None

    def _validate(self) -> None:
        super()._validate()
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            raise InvalidFieldError(
                "'timestamp' must be an integer number of Unix seconds",
                field='timestamp',
                value=self.timestamp
            )
        if self.timestamp < 0:
            raise InvalidFieldError(
                "'timestamp' cannot be negative",
                field='timestamp',
                value=self.timestamp
            )

    def _present_fields(self) -> Dict[str, Any]:
        fields = super()._present_fields()
        fields['timestamp'] = self.timestamp
        return fields

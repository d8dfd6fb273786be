"""
Tests for track records.
"""
import dataclasses
import unittest

from scrobbler.exceptions import InvalidFieldError, MissingFieldError, ValidationError
from scrobbler.tracks import NowPlaying, Scrobble


class NowPlayingTest(unittest.TestCase):
    """Test NowPlaying construction and serialization."""

    def test_required_fields_only(self):
        """Test a record with only artist and track."""
        record = NowPlaying('Kendrick Lamar', "Wesley's Theory")

        self.assertEqual(record.artist, 'Kendrick Lamar')
        self.assertEqual(record.track, "Wesley's Theory")
        self.assertIsNone(record.album)
        self.assertIsNone(record.duration)

    def test_builder_returns_new_record(self):
        """Test with_* methods leave the original untouched."""
        base = NowPlaying('Artist', 'Track')
        full = base.with_album('Album').with_duration(287).with_track_number(1)

        self.assertIsNone(base.album)
        self.assertEqual(full.album, 'Album')
        self.assertEqual(full.duration, 287)
        self.assertEqual(full.track_number, 1)

    def test_records_are_immutable(self):
        """Test fields cannot be reassigned."""
        record = NowPlaying('Artist', 'Track')

        with self.assertRaises(dataclasses.FrozenInstanceError):
            record.artist = 'Other'

    def test_empty_artist_rejected(self):
        """Test empty artist raises a validation error."""
        with self.assertRaises(MissingFieldError) as context:
            NowPlaying('', 'Track')

        self.assertEqual(context.exception.field, 'artist')
        self.assertIsInstance(context.exception, ValidationError)

    def test_whitespace_track_rejected(self):
        """Test whitespace-only track counts as empty."""
        with self.assertRaises(MissingFieldError):
            NowPlaying('Artist', '   ')

    def test_zero_duration_rejected(self):
        """Test duration 0 is not treated as absent."""
        with self.assertRaises(InvalidFieldError):
            NowPlaying('Artist', 'Track').with_duration(0)

    def test_bool_duration_rejected(self):
        """Test booleans are not accepted as durations."""
        with self.assertRaises(InvalidFieldError):
            NowPlaying('Artist', 'Track', duration=True)

    def test_empty_album_rejected(self):
        """Test an empty album must be left unset instead."""
        with self.assertRaises(InvalidFieldError):
            NowPlaying('Artist', 'Track', album='')

    def test_to_params_omits_absent_fields(self):
        """Test signature parameters only include present fields."""
        params = NowPlaying('Artist', 'Track').with_duration(200).to_params()

        self.assertEqual(params, {'artist': 'Artist', 'track': 'Track', 'duration': '200'})

    def test_to_params_uses_lastfm_names(self):
        """Test optional fields use Last.fm parameter names."""
        params = (
            NowPlaying('Artist', 'Track')
            .with_album_artist('Various')
            .with_track_number(3)
            .to_params()
        )

        self.assertEqual(params['albumArtist'], 'Various')
        self.assertEqual(params['trackNumber'], '3')

    def test_to_json_omits_absent_fields(self):
        """Test the JSON body has no null or empty entries."""
        body = NowPlaying('Artist', 'Track').with_album_artist('Various').to_json()

        self.assertEqual(body, {'artist': 'Artist', 'track': 'Track', 'album_artist': 'Various'})

    def test_player_json_only(self):
        """Test the player name appears in JSON but never in Last.fm parameters."""
        record = NowPlaying('Artist', 'Track').with_player('Rhythmbox')

        self.assertEqual(record.to_json()['player'], 'Rhythmbox')
        self.assertEqual(record.to_params(), {'artist': 'Artist', 'track': 'Track'})

    def test_player_omitted_when_absent(self):
        """Test no player key is emitted when unset."""
        self.assertNotIn('player', NowPlaying('Artist', 'Track').to_json())

    def test_empty_player_rejected(self):
        """Test an empty player name must be left unset instead."""
        with self.assertRaises(InvalidFieldError) as context:
            NowPlaying('Artist', 'Track', player='')

        self.assertEqual(context.exception.field, 'player')


class ScrobbleTest(unittest.TestCase):
    """Test Scrobble construction and serialization."""

    def test_timestamp_required(self):
        """Test timestamp is part of the record."""
        record = Scrobble('Artist', 'Track', 1700000000)

        self.assertEqual(record.timestamp, 1700000000)

    def test_negative_timestamp_rejected(self):
        """Test negative timestamps raise a validation error."""
        with self.assertRaises(InvalidFieldError) as context:
            Scrobble('Artist', 'Track', -1)

        self.assertEqual(context.exception.field, 'timestamp')

    def test_float_timestamp_rejected(self):
        """Test timestamps must be whole seconds."""
        with self.assertRaises(InvalidFieldError):
            Scrobble('Artist', 'Track', 1700000000.5)

    def test_zero_timestamp_allowed(self):
        """Test the epoch itself is a valid timestamp."""
        self.assertEqual(Scrobble('Artist', 'Track', 0).timestamp, 0)

    def test_builder_keeps_timestamp(self):
        """Test with_* methods keep the timestamp."""
        record = Scrobble('Artist', 'Track', 100).with_album('Album')

        self.assertIsInstance(record, Scrobble)
        self.assertEqual(record.timestamp, 100)
        self.assertEqual(record.album, 'Album')

    def test_indexed_params(self):
        """Test batch parameters are suffixed with the index."""
        params = Scrobble('Artist', 'Track', 100).to_params(index=2)

        self.assertEqual(params, {
            'artist[2]': 'Artist',
            'track[2]': 'Track',
            'timestamp[2]': '100',
        })

    def test_to_json_keeps_integer_timestamp(self):
        """Test the JSON body carries the timestamp as a number."""
        body = Scrobble('Artist', 'Track', 100).to_json()

        self.assertEqual(body['timestamp'], 100)
        self.assertNotIn('album', body)

    def test_indexed_params_skip_player(self):
        """Test batch parameters leave out the player name."""
        params = Scrobble('Artist', 'Track', 100).with_player('mpv').to_params(index=0)

        self.assertNotIn('player[0]', params)
        self.assertEqual(Scrobble('Artist', 'Track', 100).with_player('mpv').to_json()['player'], 'mpv')


if __name__ == '__main__':
    unittest.main()

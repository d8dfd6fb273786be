"""
Tests for submission request building and response parsing.
"""
import unittest

from scrobbler.exceptions import (
    BatchTooLargeError,
    EmptyBatchError,
    InvalidFieldError,
    InvalidResponseError,
    ValidationError,
)
from scrobbler.submission import (
    MAX_BATCH_SIZE,
    IgnoredReason,
    build_now_playing_params,
    build_scrobble_json,
    build_scrobble_params,
    check_batch,
    parse_now_playing_response,
    parse_scrobble_response,
)
from scrobbler.tracks import NowPlaying, Scrobble


def make_batch(size):
    return [Scrobble(f"Artist {i}", f"Track {i}", 1700000000 + i) for i in range(size)]


def lastfm_item(artist, track, timestamp, code='0', message=''):
    return {
        'artist': {'corrected': '0', '#text': artist},
        'album': {'corrected': '0'},
        'track': {'corrected': '0', '#text': track},
        'albumArtist': {'corrected': '0', '#text': ''},
        'ignoredMessage': {'code': code, '#text': message},
        'timestamp': str(timestamp),
    }


class CheckBatchTest(unittest.TestCase):
    """Test the batch size contract."""

    def test_max_batch_size(self):
        """Test the ceiling is 50."""
        self.assertEqual(MAX_BATCH_SIZE, 50)

    def test_fifty_allowed(self):
        """Test a batch of exactly 50 proceeds."""
        self.assertEqual(len(check_batch(make_batch(50))), 50)

    def test_fifty_one_rejected(self):
        """Test a batch of 51 fails locally."""
        with self.assertRaises(BatchTooLargeError) as context:
            check_batch(make_batch(51))

        self.assertEqual(context.exception.size, 51)
        self.assertIsInstance(context.exception, ValidationError)

    def test_empty_rejected(self):
        """Test an empty batch fails locally."""
        with self.assertRaises(EmptyBatchError):
            check_batch([])

    def test_single_record(self):
        """Test a bare Scrobble is wrapped in a list."""
        record = Scrobble('A', 'T', 1)

        self.assertEqual(check_batch(record), [record])

    def test_wrong_item_type(self):
        """Test now playing records are not scrobbles."""
        with self.assertRaises(InvalidFieldError):
            check_batch([NowPlaying('A', 'T')])


class BuildParamsTest(unittest.TestCase):
    """Test signature mode parameter building."""

    def test_now_playing_params(self):
        """Test the method and track fields."""
        params = build_now_playing_params(NowPlaying('A', 'T').with_album('Al'))

        self.assertEqual(params, {
            'method': 'track.updateNowPlaying',
            'artist': 'A',
            'track': 'T',
            'album': 'Al',
        })

    def test_scrobble_params_indexed(self):
        """Test every record gets its own index."""
        params = build_scrobble_params(make_batch(2))

        self.assertEqual(params['method'], 'track.scrobble')
        self.assertEqual(params['artist[0]'], 'Artist 0')
        self.assertEqual(params['track[1]'], 'Track 1')
        self.assertEqual(params['timestamp[1]'], '1700000001')

    def test_omitted_album_not_sent(self):
        """Test a missing album produces no album parameter at all."""
        records = [Scrobble('A', 'T', 1), Scrobble('B', 'U', 2).with_album('Al')]
        params = build_scrobble_params(records)

        self.assertNotIn('album[0]', params)
        self.assertEqual(params['album[1]'], 'Al')

    def test_scrobble_params_enforce_limit(self):
        """Test parameter building refuses oversized batches."""
        with self.assertRaises(BatchTooLargeError):
            build_scrobble_params(make_batch(51))

    def test_scrobble_json(self):
        """Test the token mode body is an ordered array."""
        body = build_scrobble_json(make_batch(3))

        self.assertEqual([item['track'] for item in body], ['Track 0', 'Track 1', 'Track 2'])
        self.assertNotIn('album', body[0])


class IgnoredReasonTest(unittest.TestCase):
    """Test ignored reason codes."""

    def test_numeric_codes(self):
        """Test Last.fm codes given as strings or ints."""
        self.assertIs(IgnoredReason.parse('0'), IgnoredReason.NONE)
        self.assertIs(IgnoredReason.parse('3'), IgnoredReason.TIMESTAMP_TOO_OLD)
        self.assertIs(IgnoredReason.parse(4), IgnoredReason.TIMESTAMP_TOO_NEW)

    def test_names(self):
        """Test lowercase names used by token servers."""
        self.assertIs(IgnoredReason.parse('daily_limit_exceeded'), IgnoredReason.DAILY_LIMIT_EXCEEDED)

    def test_unknown(self):
        """Test unrecognised codes."""
        self.assertIs(IgnoredReason.parse('99'), IgnoredReason.UNKNOWN)
        self.assertIs(IgnoredReason.parse('bogus'), IgnoredReason.UNKNOWN)

    def test_missing(self):
        """Test absent codes mean not ignored."""
        self.assertIs(IgnoredReason.parse(None), IgnoredReason.NONE)


class ParseScrobbleResponseTest(unittest.TestCase):
    """Test scrobble response parsing."""

    def test_lastfm_single_object(self):
        """Test the single-track Last.fm shape where scrobble is an object."""
        records = [Scrobble('Test Artist', 'Test Track', 1287140447)]
        data = {
            'scrobbles': {
                'scrobble': lastfm_item('Test Artist', 'Test Track', 1287140447),
                '@attr': {'ignored': 0, 'accepted': 1},
            }
        }

        result = parse_scrobble_response(data, records)

        self.assertEqual(result.accepted_count, 1)
        self.assertEqual(result.ignored_count, 0)
        self.assertEqual(len(result), 1)
        self.assertTrue(result[0].accepted)
        self.assertIsNone(result[0].ignored_reason)
        self.assertEqual(result[0].artist.value, 'Test Artist')
        self.assertEqual(result[0].timestamp, 1287140447)

    def test_lastfm_partial_acceptance_preserves_order(self):
        """Test itemized outcomes follow the submitted order."""
        records = make_batch(3)
        data = {
            'scrobbles': {
                'scrobble': [
                    lastfm_item('Artist 0', 'Track 0', 1700000000),
                    lastfm_item('Artist 1', 'Track 1', 1700000001, code='3', message='Timestamp too old'),
                    lastfm_item('Artist 2', 'Track 2', 1700000002),
                ],
                '@attr': {'ignored': '1', 'accepted': '2'},
            }
        }

        result = parse_scrobble_response(data, records)

        self.assertEqual(len(result.outcomes), 3)
        self.assertEqual(result.accepted_count + result.ignored_count, 3)
        self.assertEqual([o.accepted for o in result], [True, False, True])
        self.assertIs(result[1].ignored_reason, IgnoredReason.TIMESTAMP_TOO_OLD)
        self.assertEqual(result[1].ignored_message, 'Timestamp too old')
        self.assertEqual([o.track.value for o in result], ['Track 0', 'Track 1', 'Track 2'])
        self.assertEqual(result.ignored, [result[1]])

    def test_lastfm_corrections(self):
        """Test corrected flags are reported."""
        records = [Scrobble('the beatles', 'Yesterday', 1)]
        item = lastfm_item('The Beatles', 'Yesterday', 1)
        item['artist']['corrected'] = '1'
        data = {'scrobbles': {'scrobble': [item], '@attr': {'accepted': 1, 'ignored': 0}}}

        result = parse_scrobble_response(data, records)

        self.assertTrue(result[0].artist.corrected)
        self.assertEqual(result[0].artist.value, 'The Beatles')
        self.assertFalse(result[0].track.corrected)

    def test_lastfm_item_count_mismatch(self):
        """Test fewer items than submitted scrobbles is invalid."""
        data = {
            'scrobbles': {
                'scrobble': [lastfm_item('Artist 0', 'Track 0', 1700000000)],
                '@attr': {'ignored': 0, 'accepted': 2},
            }
        }

        with self.assertRaises(InvalidResponseError):
            parse_scrobble_response(data, make_batch(2))

    def test_lastfm_counts_mismatch(self):
        """Test counts that do not add up to the batch are invalid."""
        data = {
            'scrobbles': {
                'scrobble': lastfm_item('Artist 0', 'Track 0', 1700000000),
                '@attr': {'ignored': 1, 'accepted': 1},
            }
        }

        with self.assertRaises(InvalidResponseError):
            parse_scrobble_response(data, make_batch(1))

    def test_token_server_itemized(self):
        """Test the token server shape."""
        data = {
            'accepted': 1,
            'ignored': 1,
            'scrobbles': [
                {'accepted': True},
                {'accepted': False, 'ignored_reason': 'timestamp_too_new', 'ignored_message': 'future'},
            ],
        }

        result = parse_scrobble_response(data, make_batch(2))

        self.assertTrue(result[0].accepted)
        self.assertFalse(result[1].accepted)
        self.assertIs(result[1].ignored_reason, IgnoredReason.TIMESTAMP_TOO_NEW)
        self.assertEqual(result[1].ignored_message, 'future')
        self.assertEqual(result[1].track.value, 'Track 1')

    def test_token_server_empty_body(self):
        """Test an empty body means everything was accepted."""
        result = parse_scrobble_response(None, make_batch(4))

        self.assertEqual(result.accepted_count, 4)
        self.assertEqual(result.ignored_count, 0)
        self.assertEqual(len(result), 4)
        self.assertEqual(result[3].timestamp, 1700000003)

    def test_token_server_counts_without_items(self):
        """Test ignored counts cannot be reported without itemizing them."""
        with self.assertRaises(InvalidResponseError):
            parse_scrobble_response({'accepted': 1, 'ignored': 1}, make_batch(2))

    def test_not_an_object(self):
        """Test a JSON array is not a valid response."""
        with self.assertRaises(InvalidResponseError):
            parse_scrobble_response(['unexpected'], make_batch(1))

    def test_lastfm_item_not_an_object(self):
        """Test a scrobble item that is a bare string is invalid."""
        data = {'scrobbles': {'@attr': {'accepted': 1, 'ignored': 0}, 'scrobble': ['oops']}}

        with self.assertRaises(InvalidResponseError) as context:
            parse_scrobble_response(data, make_batch(1))

        self.assertEqual(context.exception.response, data)

    def test_lastfm_single_item_not_an_object(self):
        """Test a single-track response whose scrobble is a number."""
        data = {'scrobbles': {'@attr': {'accepted': 1, 'ignored': 0}, 'scrobble': 7}}

        with self.assertRaises(InvalidResponseError):
            parse_scrobble_response(data, make_batch(1))

    def test_lastfm_attr_not_an_object(self):
        """Test @attr given as a list is invalid."""
        data = {
            'scrobbles': {
                '@attr': [1, 0],
                'scrobble': lastfm_item('Artist 0', 'Track 0', 1700000000),
            }
        }

        with self.assertRaises(InvalidResponseError):
            parse_scrobble_response(data, make_batch(1))


class ParseNowPlayingResponseTest(unittest.TestCase):
    """Test now playing response parsing."""

    def test_lastfm_shape(self):
        """Test echoed fields are read from the nowplaying object."""
        record = NowPlaying('Test Artist', 'Test Track')
        data = {
            'nowplaying': {
                'artist': {'corrected': '0', '#text': 'Test Artist'},
                'track': {'corrected': '1', '#text': 'Test Track (Remastered)'},
                'album': {'corrected': '0'},
                'albumArtist': {'corrected': '0', '#text': ''},
                'ignoredMessage': {'code': '0', '#text': ''},
            }
        }

        result = parse_now_playing_response(data, record)

        self.assertEqual(result.track.value, 'Test Track (Remastered)')
        self.assertTrue(result.track.corrected)
        self.assertIsNone(result.album.value)
        self.assertIsNone(result.ignored_reason)

    def test_lastfm_ignored(self):
        """Test an ignored now playing update."""
        record = NowPlaying('Test Artist', 'Test Track')
        data = {'nowplaying': {'ignoredMessage': {'code': '1', '#text': 'Artist was ignored'}}}

        result = parse_now_playing_response(data, record)

        self.assertIs(result.ignored_reason, IgnoredReason.ARTIST_IGNORED)
        self.assertEqual(result.ignored_message, 'Artist was ignored')

    def test_empty_body_echoes_record(self):
        """Test an empty token server body echoes the submitted record."""
        record = NowPlaying('A', 'T').with_album('Al')

        result = parse_now_playing_response(None, record)

        self.assertEqual(result.artist.value, 'A')
        self.assertEqual(result.album.value, 'Al')
        self.assertFalse(result.artist.corrected)


if __name__ == '__main__':
    unittest.main()

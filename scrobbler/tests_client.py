"""
Tests for the scrobbler client.
"""
import threading
import time
import unittest
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import Mock, patch

import requests

from scrobbler.auth import AuthState, AuthToken
from scrobbler.client import DEFAULT_RETRY_AFTER, ScrobblerClient, parse_retry_after
from scrobbler.config import ScrobblerConfig
from scrobbler.exceptions import (
    AuthenticationError,
    AuthError,
    BatchTooLargeError,
    InvalidBaseURLError,
    InvalidResponseError,
    InvalidTokenError,
    MissingSessionKeyError,
    RateLimitError,
    ServiceError,
    ServiceUnavailableError,
    SessionExchangeFailed,
    TokenRequestFailed,
    TransportError,
    UnsupportedModeError,
    ValidationError,
)
from scrobbler.signing import AuthMode, build_signature
from scrobbler.submission import IgnoredReason
from scrobbler.tracks import NowPlaying, Scrobble


def make_response(json_data=None, status_code=200, headers=None, content=b''):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.content = content
    else:
        response.json.return_value = json_data
        response.content = b'{}'
    return response


def make_config(**overrides):
    settings = {
        'api_key': '',
        'api_secret': '',
        'session_key': '',
        'base_url': '',
        'token': '',
        'timeout': 10,
        'max_retries': 0,
        'user_agent': 'scrobbler-tests/1.0',
    }
    settings.update(overrides)
    return ScrobblerConfig(**settings)


def lastfm_scrobble_response(records, ignored_codes=None):
    ignored_codes = ignored_codes or {}
    items = []
    for index, record in enumerate(records):
        items.append({
            'artist': {'corrected': '0', '#text': record.artist},
            'track': {'corrected': '0', '#text': record.track},
            'album': {'corrected': '0', '#text': record.album or ''},
            'albumArtist': {'corrected': '0', '#text': ''},
            'ignoredMessage': {'code': str(ignored_codes.get(index, 0)), '#text': ''},
            'timestamp': str(record.timestamp),
        })
    ignored = len(ignored_codes)
    return {
        'scrobbles': {
            'scrobble': items if len(items) > 1 else items[0],
            '@attr': {'accepted': len(records) - ignored, 'ignored': ignored},
        }
    }


class ClientConstructionTest(unittest.TestCase):
    """Test client construction in both modes."""

    def test_lastfm_client(self):
        """Test a signature mode client starts unauthenticated."""
        client = ScrobblerClient.for_lastfm('test_key', 'test_secret', config=make_config())

        self.assertIs(client.mode, AuthMode.SIGNATURE)
        self.assertIsNone(client.session_key)
        self.assertIs(client.auth_state, AuthState.UNAUTHENTICATED)
        self.assertFalse(client.is_authenticated)
        self.assertIsNone(client._session)

    def test_lastfm_client_with_saved_session_key(self):
        """Test a saved session key authorizes the client."""
        client = ScrobblerClient.for_lastfm('test_key', 'test_secret', 'session123', config=make_config())

        self.assertEqual(client.session_key, 'session123')
        self.assertIs(client.auth_state, AuthState.AUTHORIZED)

    def test_token_client(self):
        """Test a token mode client."""
        client = ScrobblerClient.for_token('https://scrob.example.com/api/', 'my_token', config=make_config())

        self.assertIs(client.mode, AuthMode.TOKEN)
        self.assertIsNone(client.session_key)
        self.assertTrue(client.is_authenticated)

    def test_token_client_invalid_url(self):
        """Test a malformed base URL fails at construction."""
        with self.assertRaises(InvalidBaseURLError):
            ScrobblerClient.for_token('not a url', 'token', config=make_config())

    def test_from_config_signature_mode(self):
        """Test configuration with an API key selects signature mode."""
        config = make_config(api_key='test_api_key_12345', api_secret='test_api_secret_67890', session_key='sk')

        client = ScrobblerClient.from_config(config)

        self.assertIs(client.mode, AuthMode.SIGNATURE)
        self.assertEqual(client.session_key, 'sk')
        self.assertIs(client.config, config)

    def test_from_config_token_mode(self):
        """Test configuration with a server and token selects token mode."""
        config = make_config(base_url='https://scrob.example.com/api', token='tok')

        client = ScrobblerClient.from_config(config)

        self.assertIs(client.mode, AuthMode.TOKEN)

    def test_context_manager(self):
        """Test the HTTP session is closed on exit."""
        session = Mock()
        with ScrobblerClient.for_lastfm('K', 'S', config=make_config()) as client:
            client._session = session

        session.close.assert_called_once()
        self.assertIsNone(client._session)


class SessionKeyTransitionTest(unittest.TestCase):
    """Test the session key lifecycle."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = ScrobblerClient.for_lastfm('K', 'S', config=make_config())

    def test_set_session_key(self):
        """Test injecting a saved session key."""
        self.client.set_session_key('saved')

        self.assertEqual(self.client.session_key, 'saved')
        self.assertIs(self.client.auth_state, AuthState.AUTHORIZED)

    def test_set_same_session_key_twice(self):
        """Test setting the same key again is harmless."""
        self.client.set_session_key('saved')
        self.client.set_session_key('saved')

        self.assertEqual(self.client.session_key, 'saved')

    def test_replace_session_key_requires_clear(self):
        """Test there is no direct path from one session key to another."""
        self.client.set_session_key('saved')

        with self.assertRaises(AuthError):
            self.client.set_session_key('other')

        self.client.clear_session_key()
        self.client.set_session_key('other')

        self.assertEqual(self.client.session_key, 'other')

    def test_empty_session_key(self):
        """Test an empty key is rejected."""
        with self.assertRaises(ValidationError):
            self.client.set_session_key('')

    def test_clear_session_key(self):
        """Test clearing returns the client to unauthenticated."""
        self.client.set_session_key('saved')
        self.client.clear_session_key()

        self.assertIsNone(self.client.session_key)
        self.assertIs(self.client.auth_state, AuthState.UNAUTHENTICATED)

    def test_session_key_unsupported_in_token_mode(self):
        """Test token mode has no session key."""
        client = ScrobblerClient.for_token('https://scrob.example.com/', 'tok', config=make_config())

        with self.assertRaises(UnsupportedModeError):
            client.set_session_key('saved')


class HandshakeTest(unittest.TestCase):
    """Test the token, authorization URL, session handshake."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = make_config()
        self.client = ScrobblerClient.for_lastfm('K', 'S', config=self.config)

    @patch('scrobbler.client.requests.Session')
    def test_get_token(self, mock_session_class):
        """Test a signed, unauthenticated auth.getToken request."""
        mock_session = Mock()
        mock_session.get.return_value = make_response({'token': 'abc123'})
        mock_session_class.return_value = mock_session

        token = self.client.get_token()

        self.assertEqual(token, AuthToken('abc123'))
        self.assertIs(self.client.auth_state, AuthState.TOKEN_OBTAINED)

        url = mock_session.get.call_args[0][0]
        params = mock_session.get.call_args[1]['params']
        self.assertEqual(url, 'https://ws.audioscrobbler.com/2.0/')
        self.assertEqual(params['method'], 'auth.getToken')
        self.assertEqual(params['api_key'], 'K')
        self.assertEqual(params['format'], 'json')
        self.assertEqual(params['api_sig'], '6853c6d6f1ccd87e06f779211e32567c')
        self.assertNotIn('sk', params)

    @patch('scrobbler.client.requests.Session')
    def test_get_token_service_error(self, mock_session_class):
        """Test service errors become TokenRequestFailed."""
        mock_session = Mock()
        mock_session.get.return_value = make_response(
            {'error': 10, 'message': 'Invalid API key'},
            status_code=403
        )
        mock_session_class.return_value = mock_session

        with self.assertRaises(TokenRequestFailed) as context:
            self.client.get_token()

        self.assertIsInstance(context.exception.__cause__, AuthenticationError)
        self.assertIs(self.client.auth_state, AuthState.UNAUTHENTICATED)

    @patch('scrobbler.client.requests.Session')
    def test_get_token_connection_error(self, mock_session_class):
        """Test transport errors become TokenRequestFailed."""
        mock_session = Mock()
        mock_session.get.side_effect = requests.exceptions.ConnectionError("refused")
        mock_session_class.return_value = mock_session

        with self.assertRaises(TokenRequestFailed) as context:
            self.client.get_token()

        self.assertIsInstance(context.exception.__cause__, TransportError)

    @patch('scrobbler.client.requests.Session')
    def test_get_token_unexpected_response(self, mock_session_class):
        """Test a response without token becomes TokenRequestFailed."""
        mock_session = Mock()
        mock_session.get.return_value = make_response({'unexpected': 'data'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(TokenRequestFailed) as context:
            self.client.get_token()

        self.assertIsInstance(context.exception.__cause__, InvalidResponseError)

    @patch('scrobbler.client.requests.Session')
    def test_handshake_unsupported_in_token_mode(self, mock_session_class):
        """Test handshake steps fail locally in token mode."""
        client = ScrobblerClient.for_token('https://scrob.example.com/api/', 'tok', config=self.config)

        with self.assertRaises(UnsupportedModeError):
            client.get_token()
        with self.assertRaises(UnsupportedModeError):
            client.get_auth_url(AuthToken('T'))
        with self.assertRaises(UnsupportedModeError):
            client.get_session(AuthToken('T'))

        mock_session_class.assert_not_called()

    def test_get_auth_url(self):
        """Test the authorization URL embeds api_key and token."""
        url = self.client.get_auth_url(AuthToken('test_token'))

        self.assertEqual(url, 'https://www.last.fm/api/auth/?api_key=K&token=test_token')

    def test_get_auth_url_custom_page(self):
        """Test the authorization page comes from the configuration."""
        config = make_config(auth_url='https://libre.fm/api/auth/')
        client = ScrobblerClient.for_lastfm('K', 'S', config=config)

        self.assertTrue(client.get_auth_url('T').startswith('https://libre.fm/api/auth/?'))

    @patch('scrobbler.client.requests.Session')
    def test_get_session(self, mock_session_class):
        """Test a successful exchange stores the session key."""
        mock_session = Mock()
        mock_session.get.return_value = make_response({
            'session': {'name': 'testuser', 'key': 'sessionkey', 'subscriber': 0}
        })
        mock_session_class.return_value = mock_session

        session = self.client.get_session(AuthToken('T'))

        self.assertEqual(session.name, 'testuser')
        self.assertEqual(session.key, 'sessionkey')
        self.assertEqual(self.client.session_key, 'sessionkey')
        self.assertIs(self.client.auth_state, AuthState.AUTHORIZED)

        params = mock_session.get.call_args[1]['params']
        self.assertEqual(params['method'], 'auth.getSession')
        self.assertEqual(params['token'], 'T')
        self.assertEqual(params['api_sig'], 'a9b7c596842f7f7bf14e3f42ba211de8')

    @patch('scrobbler.client.requests.Session')
    def test_get_session_not_yet_authorized(self, mock_session_class):
        """Test error 14 is the recoverable SessionExchangeFailed."""
        mock_session = Mock()
        mock_session.get.return_value = make_response(
            {'error': 14, 'message': 'Unauthorized Token - This token has not been authorized'},
            status_code=403
        )
        mock_session_class.return_value = mock_session

        with self.assertRaises(SessionExchangeFailed) as context:
            self.client.get_session(AuthToken('T'))

        self.assertEqual(context.exception.service_code, 14)
        self.assertIsInstance(context.exception, AuthError)
        self.assertIsNone(self.client.session_key)

        # Retrying after the user authorized succeeds
        mock_session.get.return_value = make_response({'session': {'name': 'u', 'key': 'k'}})
        self.client.get_session(AuthToken('T'))

        self.assertEqual(self.client.session_key, 'k')
        self.assertEqual(mock_session.get.call_count, 2)

    @patch('scrobbler.client.requests.Session')
    def test_get_session_expired_token(self, mock_session_class):
        """Test error 15 is reported as an invalid token."""
        mock_session = Mock()
        mock_session.get.return_value = make_response({'error': 15, 'message': 'Token has expired'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(InvalidTokenError) as context:
            self.client.get_session(AuthToken('T'))

        self.assertEqual(context.exception.service_code, 15)

    @patch('scrobbler.client.requests.Session')
    def test_get_session_other_service_error(self, mock_session_class):
        """Test unrelated service errors propagate unchanged."""
        mock_session = Mock()
        mock_session.get.return_value = make_response({'error': 11, 'message': 'Service Offline'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(ServiceUnavailableError):
            self.client.get_session(AuthToken('T'))

    @patch('scrobbler.client.requests.Session')
    def test_get_session_when_authorized(self, mock_session_class):
        """Test there is no path back from the authorized state."""
        self.client.set_session_key('existing')

        with self.assertRaises(AuthError):
            self.client.get_session(AuthToken('T'))

        mock_session_class.assert_not_called()

    @patch('scrobbler.client.requests.Session')
    def test_get_session_empty_token(self, mock_session_class):
        """Test an empty token fails before any request."""
        with self.assertRaises(InvalidTokenError):
            self.client.get_session(AuthToken(''))

        mock_session_class.assert_not_called()


class SignatureSubmissionTest(unittest.TestCase):
    """Test now playing and scrobbling in signature mode."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = ScrobblerClient.for_lastfm('K', 'S', 'SK', config=make_config())

    @patch('scrobbler.client.requests.Session')
    def test_update_now_playing(self, mock_session_class):
        """Test a signed, form encoded POST."""
        mock_session = Mock()
        mock_session.post.return_value = make_response({
            'nowplaying': {
                'artist': {'corrected': '0', '#text': 'Björk'},
                'track': {'corrected': '0', '#text': 'Jóga'},
                'ignoredMessage': {'code': '0', '#text': ''},
            }
        })
        mock_session_class.return_value = mock_session

        result = self.client.update_now_playing(NowPlaying('Björk', 'Jóga'))

        self.assertEqual(result.artist.value, 'Björk')
        self.assertIsNone(result.ignored_reason)

        data = mock_session.post.call_args[1]['data']
        self.assertEqual(data['method'], 'track.updateNowPlaying')
        self.assertEqual(data['sk'], 'SK')
        self.assertEqual(data['api_sig'], '22694a060b9794523511b65aa0e8509f')
        self.assertNotIn('album', data)
        self.assertIsNone(mock_session.post.call_args[1]['json'])
        self.assertNotIn('Authorization', mock_session.post.call_args[1]['headers'])

    @patch('scrobbler.client.requests.Session')
    def test_player_not_signed(self, mock_session_class):
        """Test the player name is neither sent nor signed for Last.fm."""
        mock_session = Mock()
        mock_session.post.return_value = make_response({'nowplaying': {}})
        mock_session_class.return_value = mock_session

        self.client.update_now_playing(NowPlaying('Björk', 'Jóga').with_player('mpv'))

        data = mock_session.post.call_args[1]['data']
        self.assertNotIn('player', data)
        self.assertEqual(data['api_sig'], '22694a060b9794523511b65aa0e8509f')

    @patch('scrobbler.client.requests.Session')
    def test_update_now_playing_empty_artist(self, mock_session_class):
        """Test an empty artist fails locally with zero network calls."""
        with self.assertRaises(ValidationError):
            self.client.update_now_playing(NowPlaying(artist='', track='Track'))

        mock_session_class.assert_not_called()

    @patch('scrobbler.client.requests.Session')
    def test_update_now_playing_without_session_key(self, mock_session_class):
        """Test authenticated calls need the handshake first."""
        client = ScrobblerClient.for_lastfm('K', 'S', config=make_config())

        with self.assertRaises(MissingSessionKeyError):
            client.update_now_playing(NowPlaying('A', 'T'))

        mock_session_class.assert_not_called()

    @patch('scrobbler.client.requests.Session')
    def test_update_now_playing_rejects_other_types(self, mock_session_class):
        """Test only track records are accepted."""
        with self.assertRaises(ValidationError):
            self.client.update_now_playing({'artist': 'A', 'track': 'T'})

        mock_session_class.assert_not_called()

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_batch(self, mock_session_class):
        """Test an indexed batch with partial acceptance."""
        records = [
            Scrobble('A', 'T', 100),
            Scrobble('B', 'U', 200).with_album('Al').with_duration(180),
        ]
        mock_session = Mock()
        mock_session.post.return_value = make_response(
            lastfm_scrobble_response(records, ignored_codes={1: 4})
        )
        mock_session_class.return_value = mock_session

        result = self.client.scrobble(records)

        self.assertEqual(result.accepted_count, 1)
        self.assertEqual(result.ignored_count, 1)
        self.assertTrue(result[0].accepted)
        self.assertIs(result[1].ignored_reason, IgnoredReason.TIMESTAMP_TOO_NEW)

        data = mock_session.post.call_args[1]['data']
        self.assertEqual(data['method'], 'track.scrobble')
        self.assertEqual(data['artist[0]'], 'A')
        self.assertEqual(data['timestamp[1]'], '200')
        self.assertEqual(data['album[1]'], 'Al')
        self.assertEqual(data['duration[1]'], '180')
        self.assertNotIn('album[0]', data)
        self.assertNotIn('duration[0]', data)

        unsigned = {k: v for k, v in data.items() if k not in ('api_sig', 'format')}
        self.assertEqual(data['api_sig'], build_signature(unsigned, 'S'))

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_single_record(self, mock_session_class):
        """Test the golden single scrobble signature."""
        record = Scrobble('A', 'T', 100)
        mock_session = Mock()
        mock_session.post.return_value = make_response(lastfm_scrobble_response([record]))
        mock_session_class.return_value = mock_session

        result = self.client.scrobble(record)

        self.assertEqual(len(result), 1)
        self.assertEqual(mock_session.post.call_args[1]['data']['api_sig'], 'c9d546a799a0b19aaf96dd1884cd0322')

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_fifty(self, mock_session_class):
        """Test a batch of 50 is sent in one request with ordered outcomes."""
        records = [Scrobble(f"Artist {i}", f"Track {i}", 1700000000 + i) for i in range(50)]
        mock_session = Mock()
        mock_session.post.return_value = make_response(lastfm_scrobble_response(records))
        mock_session_class.return_value = mock_session

        result = self.client.scrobble(records)

        self.assertEqual(len(result), 50)
        self.assertEqual(result.accepted_count + result.ignored_count, 50)
        self.assertEqual([o.track.value for o in result], [r.track for r in records])
        mock_session.post.assert_called_once()

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_fifty_one(self, mock_session_class):
        """Test a batch of 51 fails before any request is built."""
        records = [Scrobble(f"Artist {i}", f"Track {i}", 1700000000 + i) for i in range(51)]

        with self.assertRaises(BatchTooLargeError):
            self.client.scrobble(records)

        mock_session_class.assert_not_called()

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_invalid_session_key(self, mock_session_class):
        """Test a top-level service error fails the whole call."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(
            {'error': 9, 'message': 'Invalid session key - Please re-authenticate'},
            status_code=403
        )
        mock_session_class.return_value = mock_session

        with self.assertRaises(AuthenticationError) as context:
            self.client.scrobble([Scrobble('A', 'T', 100)])

        self.assertEqual(context.exception.error_code, 9)

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_rate_limited(self, mock_session_class):
        """Test service error 29."""
        mock_session = Mock()
        mock_session.post.return_value = make_response({'error': 29, 'message': 'Rate limit exceeded'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(RateLimitError):
            self.client.scrobble([Scrobble('A', 'T', 100)])

    @patch('scrobbler.client.requests.Session')
    def test_unknown_service_error(self, mock_session_class):
        """Test other codes raise a plain ServiceError."""
        mock_session = Mock()
        mock_session.post.return_value = make_response({'error': 6, 'message': 'Invalid parameters'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(ServiceError) as context:
            self.client.scrobble([Scrobble('A', 'T', 100)])

        self.assertEqual(context.exception.error_code, 6)
        self.assertEqual(context.exception.response['message'], 'Invalid parameters')


class TransportErrorTest(unittest.TestCase):
    """Test HTTP level failures."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = ScrobblerClient.for_lastfm('K', 'S', 'SK', config=make_config())

    @patch('scrobbler.client.requests.Session')
    def test_http_rate_limit(self, mock_session_class):
        """Test HTTP 429 without a body."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=429, headers={'Retry-After': '30'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(RateLimitError) as context:
            self.client.update_now_playing(NowPlaying('A', 'T'))

        self.assertEqual(context.exception.retry_after, 30)

    @patch('scrobbler.client.requests.Session')
    def test_http_error_without_json(self, mock_session_class):
        """Test a 502 with an HTML body."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=502, content=b'<html>Bad Gateway</html>')
        mock_session_class.return_value = mock_session

        with self.assertRaises(TransportError) as context:
            self.client.update_now_playing(NowPlaying('A', 'T'))

        self.assertEqual(context.exception.status_code, 502)

    @patch('scrobbler.client.requests.Session')
    def test_invalid_json(self, mock_session_class):
        """Test a 200 with an undecodable body."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(content=b'not json')
        mock_session_class.return_value = mock_session

        with self.assertRaises(InvalidResponseError):
            self.client.update_now_playing(NowPlaying('A', 'T'))

    @patch('scrobbler.client.requests.Session')
    def test_timeout(self, mock_session_class):
        """Test timeouts are reported as transport errors."""
        mock_session = Mock()
        mock_session.post.side_effect = requests.exceptions.Timeout("timed out")
        mock_session_class.return_value = mock_session

        with self.assertRaises(TransportError) as context:
            self.client.scrobble([Scrobble('A', 'T', 100)])

        self.assertIn('10', context.exception.message)
        self.assertIsInstance(context.exception.__cause__, requests.exceptions.Timeout)

    @patch('scrobbler.client.requests.Session')
    def test_session_configuration(self, mock_session_class):
        """Test the HTTP session gets adapters and the user agent once."""
        mock_session = Mock()
        mock_session.headers = {}
        mock_session_class.return_value = mock_session

        first = self.client._get_session()
        second = self.client._get_session()

        self.assertIs(first, second)
        mock_session_class.assert_called_once()
        mock_session.mount.assert_called()
        self.assertEqual(mock_session.headers['User-Agent'], 'scrobbler-tests/1.0')

    @patch('scrobbler.client.requests.Session')
    def test_session_created_once_across_threads(self, mock_session_class):
        """Test concurrent first calls share a single HTTP session."""
        def slow_session():
            time.sleep(0.05)
            session = Mock()
            session.headers = {}
            return session

        mock_session_class.side_effect = slow_session
        start = threading.Barrier(4)
        sessions = []

        def worker():
            start.wait()
            sessions.append(self.client._get_session())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(mock_session_class.call_count, 1)
        self.assertEqual(len(sessions), 4)
        self.assertTrue(all(session is sessions[0] for session in sessions))

    @patch('scrobbler.client.requests.Session')
    def test_close_releases_session(self, mock_session_class):
        """Test close() drops the session so the next call builds a new one."""
        mock_session = Mock()
        mock_session.headers = {}
        mock_session_class.return_value = mock_session

        self.client._get_session()
        self.client.close()
        self.client._get_session()

        mock_session.close.assert_called_once()
        self.assertEqual(mock_session_class.call_count, 2)


class RateLimitHeaderTest(unittest.TestCase):
    """Test Retry-After handling on HTTP 429."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = ScrobblerClient.for_token('https://scrob.example.com/api/', 'my-token', config=make_config())

    @patch('scrobbler.client.requests.Session')
    def test_http_date_header(self, mock_session_class):
        """Test an HTTP-date Retry-After still raises a rate limit error."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(
            status_code=429, headers={'Retry-After': 'Wed, 21 Oct 2026 07:28:00 GMT'}
        )
        mock_session_class.return_value = mock_session

        with self.assertRaises(RateLimitError) as context:
            self.client.scrobble([Scrobble('A', 'T', 1)])

        self.assertIsInstance(context.exception.retry_after, int)
        self.assertGreaterEqual(context.exception.retry_after, 0)
        self.assertEqual(context.exception.error_code, 429)

    @patch('scrobbler.client.requests.Session')
    def test_unreadable_header(self, mock_session_class):
        """Test a garbage Retry-After leaves retry_after unset."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=429, headers={'Retry-After': 'soon'})
        mock_session_class.return_value = mock_session

        with self.assertRaises(RateLimitError) as context:
            self.client.scrobble([Scrobble('A', 'T', 1)])

        self.assertIsNone(context.exception.retry_after)

    def test_parse_seconds(self):
        """Test delay-seconds values."""
        self.assertEqual(parse_retry_after('120'), 120)
        self.assertEqual(parse_retry_after(' 0 '), 0)

    def test_parse_missing(self):
        """Test a missing header falls back to the default delay."""
        self.assertEqual(parse_retry_after(None), DEFAULT_RETRY_AFTER)

    def test_parse_past_date(self):
        """Test a date in the past means retry now."""
        self.assertEqual(parse_retry_after('Sun, 06 Nov 1994 08:49:37 GMT'), 0)

    def test_parse_future_date(self):
        """Test a future date becomes a positive delay."""
        retry_at = datetime.now(timezone.utc) + timedelta(minutes=10)

        delay = parse_retry_after(format_datetime(retry_at, usegmt=True))

        self.assertGreater(delay, 500)
        self.assertLessEqual(delay, 600)

    def test_parse_garbage(self):
        """Test values that are neither seconds nor a date."""
        self.assertIsNone(parse_retry_after('soon'))
        self.assertIsNone(parse_retry_after('-5'))


class TokenSubmissionTest(unittest.TestCase):
    """Test now playing and scrobbling in token mode."""

    def setUp(self):
        """Set up test fixtures."""
        self.client = ScrobblerClient.for_token('https://scrob.example.com/api/', 'my-token', config=make_config())

    @patch('scrobbler.client.requests.Session')
    def test_update_now_playing(self, mock_session_class):
        """Test a JSON POST to /now with the bearer header."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=204)
        mock_session_class.return_value = mock_session

        result = self.client.update_now_playing(NowPlaying('A', 'T').with_duration(287))

        self.assertEqual(result.artist.value, 'A')

        args, kwargs = mock_session.post.call_args
        self.assertEqual(args[0], 'https://scrob.example.com/api/now')
        self.assertEqual(kwargs['json'], {'artist': 'A', 'track': 'T', 'duration': 287})
        self.assertEqual(kwargs['headers'], {'Authorization': 'Bearer my-token'})
        self.assertIsNone(kwargs['data'])

    @patch('scrobbler.client.requests.Session')
    def test_player_in_json_body(self, mock_session_class):
        """Test the player name reaches token servers, also from a Scrobble."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=204)
        mock_session_class.return_value = mock_session

        self.client.update_now_playing(Scrobble('A', 'T', 100).with_player('mpv'))
        now_body = mock_session.post.call_args[1]['json']

        self.client.scrobble([Scrobble('A', 'T', 100).with_player('mpv'), Scrobble('B', 'U', 200)])
        scrob_body = mock_session.post.call_args[1]['json']

        self.assertEqual(now_body, {'artist': 'A', 'track': 'T', 'player': 'mpv'})
        self.assertEqual(scrob_body[0]['player'], 'mpv')
        self.assertNotIn('player', scrob_body[1])

    @patch('scrobbler.client.requests.Session')
    def test_scrobble(self, mock_session_class):
        """Test a JSON array POST to /scrob."""
        records = [Scrobble('A', 'T', 100), Scrobble('B', 'U', 200)]
        mock_session = Mock()
        mock_session.post.return_value = make_response({
            'accepted': 1,
            'ignored': 1,
            'scrobbles': [
                {'accepted': True},
                {'accepted': False, 'ignored_reason': 3, 'ignored_message': 'Timestamp too old'},
            ],
        })
        mock_session_class.return_value = mock_session

        result = self.client.scrobble(records)

        self.assertEqual(result.accepted_count, 1)
        self.assertIs(result[1].ignored_reason, IgnoredReason.TIMESTAMP_TOO_OLD)

        args, kwargs = mock_session.post.call_args
        self.assertEqual(args[0], 'https://scrob.example.com/api/scrob')
        self.assertEqual(kwargs['json'], [
            {'artist': 'A', 'track': 'T', 'timestamp': 100},
            {'artist': 'B', 'track': 'U', 'timestamp': 200},
        ])
        for item in kwargs['json']:
            self.assertNotIn('api_sig', item)
        self.assertIsNone(kwargs['data'])

    @patch('scrobbler.client.requests.Session')
    def test_scrobble_empty_body(self, mock_session_class):
        """Test an empty success body counts every scrobble as accepted."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=200)
        mock_session_class.return_value = mock_session

        result = self.client.scrobble([Scrobble('A', 'T', 100)])

        self.assertEqual(result.accepted_count, 1)
        self.assertEqual(result.ignored_count, 0)

    @patch('scrobbler.client.requests.Session')
    def test_unauthorized_token(self, mock_session_class):
        """Test a 401 from the server is a transport level HTTP error."""
        mock_session = Mock()
        mock_session.post.return_value = make_response(status_code=401)
        mock_session_class.return_value = mock_session

        with self.assertRaises(TransportError) as context:
            self.client.scrobble([Scrobble('A', 'T', 100)])

        self.assertEqual(context.exception.status_code, 401)


if __name__ == '__main__':
    unittest.main()

"""
Tests for the authorization handshake helpers.
"""
import unittest
from urllib.parse import parse_qs, urlsplit

from scrobbler.auth import (
    AuthToken,
    Session,
    build_auth_url,
    parse_session_response,
    parse_token_response,
)
from scrobbler.exceptions import AuthError, InvalidResponseError, InvalidTokenError


class BuildAuthUrlTest(unittest.TestCase):
    """Test authorization URL construction."""

    def test_default_url(self):
        """Test the URL points at the Last.fm authorization page."""
        url = build_auth_url('my_api_key', AuthToken('test_token'))

        self.assertEqual(url, 'https://www.last.fm/api/auth/?api_key=my_api_key&token=test_token')

    def test_query_round_trip(self):
        """Test parsing the query recovers api_key and token unchanged."""
        api_key = 'key with spaces&symbols='
        token = 'tök/en+?'
        url = build_auth_url(api_key, AuthToken(token))

        query = parse_qs(urlsplit(url).query)

        self.assertEqual(query['api_key'], [api_key])
        self.assertEqual(query['token'], [token])

    def test_plain_string_token(self):
        """Test a raw token string is accepted."""
        url = build_auth_url('K', 'abc')

        self.assertTrue(url.endswith('token=abc'))

    def test_auth_url_with_existing_query(self):
        """Test a custom page that already has a query string."""
        url = build_auth_url('K', AuthToken('T'), auth_url='https://libre.fm/api/auth/?lang=en')

        self.assertEqual(url, 'https://libre.fm/api/auth/?lang=en&api_key=K&token=T')

    def test_empty_token_rejected(self):
        """Test an empty token is structurally invalid."""
        with self.assertRaises(InvalidTokenError) as context:
            build_auth_url('K', AuthToken(''))

        self.assertIsInstance(context.exception, AuthError)


class ParseResponsesTest(unittest.TestCase):
    """Test handshake response parsing."""

    def test_parse_token(self):
        """Test the token is extracted."""
        token = parse_token_response({'token': 'abc123'})

        self.assertEqual(token, AuthToken('abc123'))
        self.assertEqual(str(token), 'abc123')

    def test_parse_token_missing(self):
        """Test a response without token is invalid."""
        with self.assertRaises(InvalidResponseError):
            parse_token_response({'unexpected': True})

    def test_parse_session(self):
        """Test key and name are extracted."""
        session = parse_session_response({
            'session': {'name': 'testuser', 'key': 'sessionkey', 'subscriber': 0}
        })

        self.assertEqual(session, Session(key='sessionkey', name='testuser'))

    def test_session_repr_hides_key(self):
        """Test the session key does not show up in repr()."""
        session = Session(key='sessionkey', name='testuser')

        self.assertNotIn('sessionkey', repr(session))
        self.assertIn('testuser', repr(session))

    def test_parse_session_incomplete(self):
        """Test a session without key is invalid."""
        with self.assertRaises(InvalidResponseError):
            parse_session_response({'session': {'name': 'testuser'}})

    def test_parse_session_missing(self):
        """Test a response without session is invalid."""
        with self.assertRaises(InvalidResponseError):
            parse_session_response({})


if __name__ == '__main__':
    unittest.main()

"""
Tests for request signing.
"""
import hashlib
import unittest

from scrobbler.exceptions import (
    InvalidBaseURLError,
    MissingParameterError,
    MissingSessionKeyError,
    ValidationError,
)
from scrobbler.signing import (
    AuthMode,
    BearerSigner,
    SignatureSigner,
    build_signature,
    validate_base_url,
)


class BuildSignatureTest(unittest.TestCase):
    """Test the api_sig computation."""

    def test_golden_vector(self):
        """Test MD5("api_keyKmethodauth.getSessiontokenT" + "S")."""
        sig = build_signature(
            {'method': 'auth.getSession', 'api_key': 'K', 'token': 'T'},
            'S'
        )

        self.assertEqual(sig, 'a9b7c596842f7f7bf14e3f42ba211de8')

    def test_matches_manual_digest(self):
        """Test against a digest computed by hand."""
        params = {'method': 'auth.getSession', 'api_key': 'testkey', 'token': 'testtoken'}
        expected = hashlib.md5(
            'api_keytestkeymethodauth.getSessiontokentesttokentestsecret'.encode('utf-8')
        ).hexdigest()

        self.assertEqual(build_signature(params, 'testsecret'), expected)
        self.assertEqual(expected, '7e846232cc93d093646ff399db5c3d75')

    def test_deterministic(self):
        """Test signing twice yields the same signature."""
        params = {'method': 'track.scrobble', 'api_key': 'K', 'sk': 'SK'}

        self.assertEqual(build_signature(params, 'S'), build_signature(params, 'S'))

    def test_independent_of_input_order(self):
        """Test reversed parameter iteration does not change the signature."""
        params = {'method': 'auth.getSession', 'api_key': 'K', 'token': 'T'}
        reversed_params = dict(reversed(list(params.items())))

        self.assertEqual(build_signature(params, 'S'), build_signature(reversed_params, 'S'))

    def test_sorted_by_byte_value(self):
        """Test uppercase names sort before lowercase ones."""
        sig = build_signature({'alpha': '2', 'Zeta': '1'}, 'S')

        self.assertEqual(sig, hashlib.md5(b'Zeta1alpha2S').hexdigest())
        self.assertEqual(sig, '6a5353c0b1e06ae73ce5bf8b88503fc5')

    def test_format_and_callback_excluded(self):
        """Test format and callback do not take part in signing."""
        sig = build_signature({'method': 'test', 'format': 'json', 'callback': 'cb'}, 'secret')

        self.assertEqual(sig, 'b8da213d47dafb7d7f0b2925886517e0')

    def test_unicode_values_hashed_as_utf8(self):
        """Test non-ASCII values are encoded as UTF-8 before hashing."""
        params = {
            'method': 'track.updateNowPlaying',
            'api_key': 'K',
            'sk': 'SK',
            'artist': 'Björk',
            'track': 'Jóga',
        }

        self.assertEqual(build_signature(params, 'S'), '22694a060b9794523511b65aa0e8509f')

    def test_lowercase_hex(self):
        """Test the signature is 32 lowercase hex characters."""
        sig = build_signature({'method': 'auth.getToken', 'api_key': 'K'}, 'S')

        self.assertEqual(len(sig), 32)
        self.assertEqual(sig, sig.lower())
        self.assertEqual(sig, '6853c6d6f1ccd87e06f779211e32567c')


class SignatureSignerTest(unittest.TestCase):
    """Test the signature mode signer."""

    def setUp(self):
        """Set up test fixtures."""
        self.signer = SignatureSigner('K', 'S', session_key='SK')

    def test_mode(self):
        """Test the signer reports signature mode."""
        self.assertIs(self.signer.mode, AuthMode.SIGNATURE)

    def test_authenticated_request(self):
        """Test api_key, sk, api_sig and format are added."""
        request = self.signer.build_request({
            'method': 'track.scrobble',
            'artist[0]': 'A',
            'track[0]': 'T',
            'timestamp[0]': '100',
        })

        self.assertEqual(request.http_method, 'POST')
        self.assertEqual(request.url, 'https://ws.audioscrobbler.com/2.0/')
        self.assertEqual(request.data['api_key'], 'K')
        self.assertEqual(request.data['sk'], 'SK')
        self.assertEqual(request.data['format'], 'json')
        self.assertEqual(request.data['api_sig'], 'c9d546a799a0b19aaf96dd1884cd0322')
        self.assertIsNone(request.json)

    def test_secret_never_transmitted(self):
        """Test the shared secret is not part of the request."""
        request = self.signer.build_request({'method': 'track.scrobble', 'artist[0]': 'A'})

        self.assertNotIn('S', request.data.values())
        self.assertNotIn('Authorization', request.headers)

    def test_unauthenticated_request_has_no_session_key(self):
        """Test handshake requests skip the session key."""
        request = self.signer.build_request(
            {'method': 'auth.getToken'},
            authenticated=False,
            http_method='GET'
        )

        self.assertEqual(request.http_method, 'GET')
        self.assertNotIn('sk', request.params)
        self.assertIsNone(request.data)
        self.assertEqual(request.params['api_sig'], '6853c6d6f1ccd87e06f779211e32567c')

    def test_missing_session_key(self):
        """Test authenticated calls fail locally without a session key."""
        signer = SignatureSigner('K', 'S')

        with self.assertRaises(MissingSessionKeyError) as context:
            signer.build_request({'method': 'track.updateNowPlaying', 'artist': 'A', 'track': 'T'})

        self.assertIsInstance(context.exception, ValidationError)

    def test_missing_method(self):
        """Test a request without method is rejected."""
        with self.assertRaises(MissingParameterError) as context:
            self.signer.build_request({'artist': 'A'})

        self.assertEqual(context.exception.parameter, 'method')

    def test_empty_value_rejected(self):
        """Test empty parameter values are rejected."""
        with self.assertRaises(MissingParameterError) as context:
            self.signer.build_request({'method': 'auth.getSession', 'token': ''}, authenticated=False)

        self.assertEqual(context.exception.parameter, 'token')

    def test_with_session_key_returns_new_signer(self):
        """Test the session key transition does not mutate the signer."""
        signer = SignatureSigner('K', 'S')
        authorized = signer.with_session_key('SK')

        self.assertIsNone(signer.session_key)
        self.assertEqual(authorized.session_key, 'SK')
        self.assertEqual(authorized.api_key, 'K')

    def test_custom_api_root(self):
        """Test requests go to the configured API root."""
        signer = SignatureSigner('K', 'S', api_root='https://libre.fm/2.0/')
        request = signer.build_request({'method': 'auth.getToken'}, authenticated=False)

        self.assertEqual(request.url, 'https://libre.fm/2.0/')


class BearerSignerTest(unittest.TestCase):
    """Test the token mode signer."""

    def test_mode(self):
        """Test the signer reports token mode."""
        self.assertIs(BearerSigner('https://scrob.example.com/api/', 'tok').mode, AuthMode.TOKEN)

    def test_request_shape(self):
        """Test bearer header and JSON body."""
        signer = BearerSigner('https://scrob.example.com/api/', 'my-token')
        request = signer.build_request('now', {'artist': 'A', 'track': 'T'})

        self.assertEqual(request.http_method, 'POST')
        self.assertEqual(request.url, 'https://scrob.example.com/api/now')
        self.assertEqual(request.headers, {'Authorization': 'Bearer my-token'})
        self.assertEqual(request.json, {'artist': 'A', 'track': 'T'})
        self.assertIsNone(request.data)

    def test_no_signature_fields(self):
        """Test bearer requests carry no api_sig."""
        signer = BearerSigner('https://scrob.example.com/api', 'my-token')
        request = signer.build_request('scrob', [{'artist': 'A', 'track': 'T', 'timestamp': 1}])

        self.assertEqual(request.url, 'https://scrob.example.com/api/scrob')
        for item in request.json:
            self.assertNotIn('api_sig', item)

    def test_invalid_base_url(self):
        """Test a malformed base URL fails at construction."""
        with self.assertRaises(InvalidBaseURLError):
            BearerSigner('not a url', 'token')

    def test_relative_base_url(self):
        """Test a URL without a host is rejected."""
        with self.assertRaises(InvalidBaseURLError):
            validate_base_url('/api/')

    def test_non_http_scheme(self):
        """Test only http and https are accepted."""
        with self.assertRaises(InvalidBaseURLError):
            validate_base_url('ftp://example.com/')

    def test_missing_token(self):
        """Test an empty token is rejected."""
        with self.assertRaises(MissingParameterError):
            BearerSigner('https://scrob.example.com/', '')


if __name__ == '__main__':
    unittest.main()

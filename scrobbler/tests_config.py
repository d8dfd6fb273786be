"""
Tests for scrobbler configuration.
"""
import os
import unittest
from unittest.mock import patch

from scrobbler.config import ScrobblerConfig, get_scrobbler_config
from scrobbler.signing import DEFAULT_API_ROOT, AuthMode


class ScrobblerConfigTest(unittest.TestCase):
    """Test configuration management."""

    @patch.dict(os.environ, {
        'LASTFM_API_KEY': 'test_api_key_12345',
        'LASTFM_API_SECRET': 'test_api_secret_67890',
        'LASTFM_SESSION_KEY': 'saved_session',
        'SCROBBLER_TIMEOUT': '5',
    })
    def test_config_from_environment(self):
        """Test configuration with all signature mode settings."""
        config = ScrobblerConfig()

        self.assertEqual(config.api_key, 'test_api_key_12345')
        self.assertEqual(config.api_secret, 'test_api_secret_67890')
        self.assertEqual(config.session_key, 'saved_session')
        self.assertEqual(config.timeout, 5.0)
        self.assertIs(config.mode, AuthMode.SIGNATURE)
        self.assertTrue(config.is_configured())

    @patch.dict(os.environ, {
        'SCROBBLE_BASE_URL': 'https://scrob.example.com/api/',
        'SCROBBLE_TOKEN': 'env-token',
    })
    def test_token_mode_from_environment(self):
        """Test a base URL and token select token mode."""
        config = ScrobblerConfig(api_key='', api_secret='')

        self.assertIs(config.mode, AuthMode.TOKEN)
        self.assertTrue(config.is_configured())

    def test_overrides(self):
        """Test keyword arguments win over the environment."""
        config = ScrobblerConfig(api_key='override_key', api_secret='override_secret', max_retries=2)

        self.assertEqual(config.api_key, 'override_key')
        self.assertEqual(config.max_retries, 2)

    def test_defaults(self):
        """Test transport defaults."""
        config = ScrobblerConfig(api_key='k', api_secret='s', timeout=None)

        self.assertIn(config.api_root, (DEFAULT_API_ROOT, os.environ.get('LASTFM_API_ROOT')))
        self.assertGreater(config.timeout, 0)

    def test_config_not_configured(self):
        """Test configuration with missing settings."""
        config = ScrobblerConfig(api_key='', api_secret='', base_url='', token='')

        self.assertFalse(config.is_configured())

        is_valid, error_message = config.validate()

        self.assertFalse(is_valid)
        self.assertIn('API key', error_message)

    def test_validation_missing_secret(self):
        """Test validation fails without shared secret."""
        config = ScrobblerConfig(api_key='test_api_key_12345', api_secret='', base_url='', token='')

        is_valid, error_message = config.validate()

        self.assertFalse(is_valid)
        self.assertIn('secret', error_message)

    def test_validation_base_url_without_token(self):
        """Test a server without a token is incomplete."""
        config = ScrobblerConfig(base_url='https://scrob.example.com/', token='')

        is_valid, error_message = config.validate()

        self.assertFalse(is_valid)
        self.assertIn('token', error_message)

    def test_validation_invalid_timeout(self):
        """Test a non-positive timeout is invalid."""
        config = ScrobblerConfig(api_key='k', api_secret='s', base_url='', token='', timeout=0)

        is_valid, error_message = config.validate()

        self.assertFalse(is_valid)
        self.assertIn('timeout', error_message)

    def test_masked_api_key(self):
        """Test API key masking for display."""
        config = ScrobblerConfig(api_key='test_api_key_12345')

        masked = config.get_masked_api_key()

        self.assertIn('***', masked)
        self.assertNotEqual(masked, config.api_key)
        self.assertTrue(masked.startswith('tes'))
        self.assertTrue(masked.endswith('345'))

    def test_masked_api_key_empty(self):
        """Test API key masking when not configured."""
        config = ScrobblerConfig(api_key='')

        self.assertEqual(config.get_masked_api_key(), "Not configured")

    def test_get_status_hides_credentials(self):
        """Test status reporting never includes secrets."""
        config = ScrobblerConfig(
            api_key='test_api_key_12345',
            api_secret='test_api_secret_67890',
            session_key='secret_session',
            base_url='',
            token='',
        )

        status = config.get_status()

        self.assertTrue(status['configured'])
        self.assertEqual(status['mode'], 'signature')
        self.assertTrue(status['has_session_key'])
        self.assertNotIn('test_api_secret_67890', status.values())
        self.assertNotIn('secret_session', status.values())
        self.assertNotIn('test_api_key_12345', status.values())

    def test_log_status(self):
        """Test status logging does not leak the secret."""
        config = ScrobblerConfig(api_key='test_api_key_12345', api_secret='test_api_secret_67890')

        with self.assertLogs('scrobbler.config', level='INFO') as logs:
            config.log_status()

        self.assertEqual(len(logs.records), 1)
        self.assertNotIn('test_api_secret_67890', logs.output[0])

    def test_get_scrobbler_config(self):
        """Test the factory passes overrides through."""
        config = get_scrobbler_config(api_key='factory_key')

        self.assertIsInstance(config, ScrobblerConfig)
        self.assertEqual(config.api_key, 'factory_key')


if __name__ == '__main__':
    unittest.main()

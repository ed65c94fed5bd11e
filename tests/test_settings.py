import tempfile
import unittest
from pathlib import Path

from backup_auditor.settings import AuditConfigurationError, AuditSettings, SETTING_DIGEST_ALGORITHM


class AuditSettingsTest(unittest.TestCase):
    def test_defaults_without_file(self):
        settings = AuditSettings()

        self.assertIsNone(settings.config_path)
        self.assertIsNone(settings.get(SETTING_DIGEST_ALGORITHM))
        self.assertEqual('sha256', settings.get(SETTING_DIGEST_ALGORITHM, 'sha256'))

    def test_dotted_keys(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'audit.toml'
            path.write_text('[digest]\nalgorithm = "sha512"\n[audit]\nexclude = ["tmp"]\n')

            settings = AuditSettings(path)

            self.assertEqual('sha512', settings.get('digest.algorithm'))
            self.assertEqual(['tmp'], settings.get('audit.exclude'))
            self.assertEqual({'algorithm': 'sha512'}, settings.get('digest'))
            self.assertEqual('fallback', settings.get('digest.algorithm.name', 'fallback'))
            self.assertEqual('fallback', settings.get('missing.key', 'fallback'))

    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                AuditSettings(Path(tmpdir) / 'missing.toml')

    def test_invalid_toml(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / 'audit.toml'
            path.write_text('[digest\n')

            with self.assertRaises(AuditConfigurationError):
                AuditSettings(path)


if __name__ == '__main__':
    unittest.main()

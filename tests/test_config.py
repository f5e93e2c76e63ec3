"""
Tests for configuration.

These tests cover:
- Defaults
- Environment overrides
- Save/load
"""

from pathlib import Path

from smsimg.core.config import BroadcastPolicy, SmsImgConfig


class TestDefaults:
    """Tests for default values."""

    def test_protocol_constants(self):
        """Defaults match the wire protocol."""
        config = SmsImgConfig()
        assert config.prefix == "[SMSIMG]"
        assert config.fragment_size == 1200
        assert config.max_dimension == 400
        assert config.quality == 50
        assert config.settle_delay == 8.0
        assert config.pacing_delay == 1.0
        assert config.reconnect_interval == 3.0

    def test_relay_url(self):
        """Relay URL is built from host and port."""
        assert SmsImgConfig().relay_url == "ws://localhost:8080"
        assert SmsImgConfig(relay_host="relay", relay_port=9000).relay_url == "ws://relay:9000"

    def test_explicit_relay_url(self):
        """Explicit URL wins over host and port."""
        assert SmsImgConfig(relay_url="ws://example:1").relay_url == "ws://example:1"

    def test_default_policy(self):
        """Relay excludes the sender by default."""
        assert SmsImgConfig().broadcast_policy == BroadcastPolicy.EXCLUDE_SENDER

    def test_development(self):
        """Development config has short timers."""
        config = SmsImgConfig.development()
        assert config.settle_delay < 8.0
        assert config.log_level == "DEBUG"


class TestEnvironment:
    """Tests for SMSIMG_* overrides."""

    def test_relay_overrides(self, monkeypatch):
        """Host and port from the environment."""
        monkeypatch.setenv("SMSIMG_RELAY_HOST", "10.0.0.2")
        monkeypatch.setenv("SMSIMG_RELAY_PORT", "9999")
        config = SmsImgConfig()
        assert config.relay_port == 9999
        assert config.relay_url == "ws://10.0.0.2:9999"

    def test_timing_overrides(self, monkeypatch):
        """Timers from the environment."""
        monkeypatch.setenv("SMSIMG_SETTLE_DELAY", "0.5")
        monkeypatch.setenv("SMSIMG_PACING_DELAY", "0")
        config = SmsImgConfig()
        assert config.settle_delay == 0.5
        assert config.pacing_delay == 0.0

    def test_policy_override(self, monkeypatch):
        """Broadcast policy from the environment."""
        monkeypatch.setenv("SMSIMG_BROADCAST_POLICY", "include_sender")
        assert SmsImgConfig().broadcast_policy == BroadcastPolicy.INCLUDE_SENDER

    def test_downloads_override(self, monkeypatch, tmp_path):
        """Downloads directory from the environment."""
        monkeypatch.setenv("SMSIMG_DOWNLOADS_DIR", str(tmp_path))
        assert SmsImgConfig().downloads_dir == Path(tmp_path)


class TestPersistence:
    """Tests for save/load."""

    def test_save_load(self, tmp_path):
        """Saved config loads back."""
        config = SmsImgConfig(relay_url="ws://relay:1234", settle_delay=2.0, fragment_size=600)
        path = tmp_path / "config.json"
        config.save(path)

        loaded = SmsImgConfig.load(path)
        assert loaded.relay_url == "ws://relay:1234"
        assert loaded.settle_delay == 2.0
        assert loaded.fragment_size == 600
        assert loaded.prefix == "[SMSIMG]"

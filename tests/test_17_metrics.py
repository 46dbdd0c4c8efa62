"""Tests for Prometheus metrics."""
from tts_cache.core.metrics import TTSMetrics


def _text(m: TTSMetrics) -> str:
    content, content_type = m.get_metrics_response()
    assert content_type.startswith("text/plain")
    return content.decode("utf-8")


def test_generation_counters():
    m = TTSMetrics()
    m.record_generation("miss", 2.0, chunks=3, audio_bytes=1000)
    m.record_generation("hit", 0.01)

    text = _text(m)

    assert 'tts_generations_total{outcome="miss"} 1.0' in text
    assert 'tts_generations_total{outcome="hit"} 1.0' in text
    assert "tts_audio_bytes_total 1000.0" in text
    assert "tts_chunks_per_generation_count 1.0" in text


def test_provider_calls_and_queries():
    m = TTSMetrics()
    m.record_provider_call("google", "success", 0.4)
    m.record_provider_call("google", "error", 0.1)
    m.record_query("completed")

    text = _text(m)

    assert 'tts_provider_calls_total{engine="google",status="success"} 1.0' in text
    assert 'tts_provider_calls_total{engine="google",status="error"} 1.0' in text
    assert 'tts_status_queries_total{status="completed"} 1.0' in text


def test_gauges():
    m = TTSMetrics()
    m.set_inflight(3)
    m.set_queue_depth(7)

    text = _text(m)

    assert "tts_inflight_provider_calls 3.0" in text
    assert "tts_queue_depth 7.0" in text


def test_instances_isolated():
    a, b = TTSMetrics(), TTSMetrics()
    a.record_query("pending")
    assert 'status="pending"' not in _text(b)

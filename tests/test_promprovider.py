import pytest

from fabriclib import metrics
from fabriclib.promprovider import (
    DEFAULT_BUCKETS,
    LabelCardinalityError,
    Provider,
    Registry,
)


@pytest.fixture
def registry():
    return Registry()


@pytest.fixture
def provider(registry):
    return Provider(registry)


def counter_opts(**kw):
    base = dict(namespace="peer", subsystem="playground", name="counter_name",
                help="This is some help text for the counter", label_names=["alpha", "beta"])
    base.update(kw)
    return metrics.CounterOpts(**base)


def histogram_opts(**kw):
    base = dict(namespace="peer", subsystem="playground", name="histogram_name",
                help="This is some help text for the gauge", label_names=["alpha", "beta"])
    base.update(kw)
    return metrics.HistogramOpts(**base)


def test_counter_with_labels(provider, registry):
    counter = provider.new_counter(counter_opts())
    counter.with_labels("alpha", "a", "beta", "b").add(1)
    counter.with_labels("alpha", "aardvark", "beta", "b").add(2)
    text = registry.exposition()
    assert "# HELP peer_playground_counter_name This is some help text for the counter" in text
    assert "# TYPE peer_playground_counter_name counter" in text
    assert 'peer_playground_counter_name{alpha="a",beta="b"} 1' in text
    assert 'peer_playground_counter_name{alpha="aardvark",beta="b"} 2' in text


def test_counter_without_labels(provider, registry):
    provider.new_counter(counter_opts(label_names=[])).add(1)
    assert "peer_playground_counter_name 1" in registry.exposition()


def test_gauge_with_labels(provider, registry):
    gauge = provider.new_gauge(metrics.GaugeOpts(
        namespace="peer", subsystem="playground", name="gauge_name",
        help="This is some help text for the gauge", label_names=["alpha", "beta"]))
    gauge.with_labels("alpha", "a", "beta", "b").add(1)
    gauge.with_labels("alpha", "a", "beta", "b").add(1)
    gauge.with_labels("alpha", "aardvark", "beta", "b").add(1)
    gauge.with_labels("alpha", "aardvark", "beta", "bob").set(99)
    text = registry.exposition()
    assert "# TYPE peer_playground_gauge_name gauge" in text
    assert 'peer_playground_gauge_name{alpha="a",beta="b"} 2' in text
    assert 'peer_playground_gauge_name{alpha="aardvark",beta="b"} 1' in text
    assert 'peer_playground_gauge_name{alpha="aardvark",beta="bob"} 99' in text


def test_histogram_default_buckets(provider, registry):
    histogram = provider.new_histogram(histogram_opts())
    for limit in DEFAULT_BUCKETS:
        histogram.with_labels("alpha", "a", "beta", "b").observe(limit)
    histogram.with_labels("alpha", "a", "beta", "b").observe(DEFAULT_BUCKETS[-1] + 1)
    text = registry.exposition()
    assert "# TYPE peer_playground_histogram_name histogram" in text
    expected = ["0.005", "0.01", "0.025", "0.05", "0.1", "0.25", "0.5", "1", "2.5", "5", "10", "+Inf"]
    for count, le in enumerate(expected, start=1):
        assert f'peer_playground_histogram_name_bucket{{alpha="a",beta="b",le="{le}"}} {count}' in text
    assert 'peer_playground_histogram_name_sum{alpha="a",beta="b"} ' in text
    assert 'peer_playground_histogram_name_count{alpha="a",beta="b"} 12' in text


def test_histogram_custom_buckets(provider, registry):
    histogram = provider.new_histogram(histogram_opts(buckets=[1, 5]))
    histogram.with_labels("alpha", "a", "beta", "b").observe(0.5)
    histogram.with_labels("alpha", "a", "beta", "b").observe(4.5)
    text = registry.exposition()
    assert 'peer_playground_histogram_name_bucket{alpha="a",beta="b",le="1"} 1' in text
    assert 'peer_playground_histogram_name_bucket{alpha="a",beta="b",le="5"} 2' in text
    assert 'peer_playground_histogram_name_sum{alpha="a",beta="b"} 5' in text
    assert 'peer_playground_histogram_name_count{alpha="a",beta="b"} 2' in text


def test_missing_label_value_is_unknown(provider, registry):
    provider.new_counter(counter_opts()).with_labels("alpha", "a", "beta").add(1)
    assert 'peer_playground_counter_name{alpha="a",beta="unknown"} 1' in registry.exposition()


def test_extra_label_raises(provider):
    counter = provider.new_counter(counter_opts())
    with pytest.raises(LabelCardinalityError,
                       match=r"inconsistent label cardinality: expected 2 label values but got 3 in prometheus\.Labels\{.*\}"):
        counter.with_labels("alpha", "a", "beta", "b", "charlie", "c").add(1)


def test_no_labels_raises(provider):
    with pytest.raises(LabelCardinalityError) as info:
        provider.new_counter(counter_opts()).add(1)
    assert str(info.value) == (
        "inconsistent label cardinality: expected 2 label values but got 0 in prometheus.Labels{}"
    )


def test_duplicate_registration(provider):
    provider.new_counter(counter_opts())
    with pytest.raises(ValueError):
        provider.new_counter(counter_opts())
"""编解码基准测试."""

import pytest

from cborkit import dumps, encoded_length, from_python, iter_loads, loads, to_python


@pytest.mark.benchmark(group="record")
def test_bench_encode_record(benchmark, record_item):
    """测试单条记录编码性能."""
    benchmark(dumps, record_item)


@pytest.mark.benchmark(group="record")
def test_bench_decode_record(benchmark, record_bytes):
    """测试单条记录解码性能."""
    benchmark(loads, record_bytes)


@pytest.mark.benchmark(group="record")
def test_bench_encoded_length(benchmark, record_item):
    """测试编码长度计算性能."""
    benchmark(encoded_length, record_item)


@pytest.mark.benchmark(group="large")
def test_bench_encode_large(benchmark, large_obj):
    """测试大数组 (含 Python 对象转换) 编码性能."""
    benchmark(dumps, large_obj)


@pytest.mark.benchmark(group="large")
def test_bench_decode_large(benchmark, large_bytes):
    """测试大数组解码性能."""
    benchmark(loads, large_bytes)


@pytest.mark.benchmark(group="convert")
def test_bench_from_python(benchmark, large_obj):
    """测试 Python 对象到数据项的转换."""
    benchmark(from_python, large_obj)


@pytest.mark.benchmark(group="convert")
def test_bench_to_python(benchmark, large_bytes):
    """测试数据项到 Python 对象的转换."""
    item = loads(large_bytes)
    benchmark(to_python, item)


@pytest.mark.benchmark(group="structural")
def test_bench_decode_deep(benchmark, deep_bytes):
    """测试深度嵌套解码."""
    benchmark(loads, deep_bytes)


@pytest.mark.benchmark(group="structural")
def test_bench_iter_sequence(benchmark, record_bytes):
    """测试 CBOR 序列的迭代解码."""
    data = record_bytes * 100

    def run():
        return sum(1 for _ in iter_loads(data))

    assert benchmark(run) == 100

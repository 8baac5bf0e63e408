import json

import pytest

from issuebridge.logging import StructuredLogger, configure_logging, get_logger


def _json_lines(capsys):
    captured = capsys.readouterr()
    return [json.loads(line) for line in captured.out.strip().split('\n') if line]


def test_structured_logger_json_format(capsys):
    """Test that structured logger produces JSON output when configured."""
    logger = StructuredLogger(name='test', json_logging=True, level='INFO')
    logger.log_operation('test_operation', param1='value1', param2=42)

    log_lines = _json_lines(capsys)

    assert len(log_lines) == 1
    entry = log_lines[0]
    assert entry['message'] == 'Operation: test_operation'
    assert entry['operation'] == 'test_operation'
    assert entry['param1'] == 'value1'
    assert entry['param2'] == 42
    assert entry['level'] == 'INFO'
    assert entry['correlation_id'] == logger.correlation_id


def test_child_logger_merges_context(capsys):
    logger = StructuredLogger(name='test.child', json_logging=True)
    child = logger.child(task_id='t1')
    grandchild = child.child(repo='acme/widgets')

    grandchild.warning('Could not resolve', source='kv')

    entry = _json_lines(capsys)[0]
    assert entry['task_id'] == 't1'
    assert entry['repo'] == 'acme/widgets'
    assert entry['source'] == 'kv'
    assert entry['correlation_id'] == logger.correlation_id
    assert 'task_id' not in logger.context


def test_duplicate_json_records_are_suppressed(capsys):
    logger = StructuredLogger(name='test.dedupe', json_logging=True)

    logger.info('same', key='a')
    logger.info('same', key='a')
    logger.info('same', key='b')

    assert [e['key'] for e in _json_lines(capsys)] == ['a', 'b']


def test_level_filters_debug(capsys):
    logger = StructuredLogger(name='test.level', json_logging=True, level='INFO')

    logger.debug('hidden')
    logger.error('shown')

    entries = _json_lines(capsys)
    assert [e['message'] for e in entries] == ['shown']


def test_plain_text_format(capsys):
    logger = StructuredLogger(name='test.plain', json_logging=False, level='DEBUG')

    logger.debug('hello plain')

    captured = capsys.readouterr()
    assert 'DEBUG test.plain hello plain' in captured.out


def test_plain_text_format_includes_context(capsys):
    logger = StructuredLogger(name='test.plain.ctx', json_logging=False).child(task_id='t1')

    logger.warning('Could not resolve', full_repo='acme/widgets', has_description=False)

    out = capsys.readouterr().out
    assert 'WARNING test.plain.ctx Could not resolve' in out
    assert 'task_id=t1' in out
    assert 'full_repo=acme/widgets' in out
    assert 'has_description=False' in out
    assert 'correlation_id' not in out


def test_log_error_and_performance(capsys):
    logger = StructuredLogger(name='test.perf', json_logging=True)

    logger.log_performance('fetch', 12.5, repo='acme/widgets')
    logger.log_error('boom', error='ValueError')

    perf, err = _json_lines(capsys)
    assert perf['duration_ms'] == 12.5
    assert perf['operation'] == 'fetch'
    assert err['level'] == 'ERROR'
    assert err['error'] == 'ValueError'


def test_timed_operation_logs_failure(capsys):
    logger = StructuredLogger(name='test.timed', json_logging=True)

    with pytest.raises(RuntimeError):
        with logger.timed_operation('sync', batch=1):
            raise RuntimeError('nope')

    start, failure = _json_lines(capsys)
    assert start['operation'] == 'sync_start'
    assert failure['message'] == 'operation sync failed'
    assert failure['error'] == 'nope'


def test_configure_logging_replaces_global():
    configured = configure_logging(json_logging=True, level='DEBUG')
    assert get_logger() is configured

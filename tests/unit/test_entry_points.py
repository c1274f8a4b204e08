"""Unit tests for the Lambda function entry points under src/."""

import importlib.util
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parents[2] / 'src'


def _load(function_dir):
    spec = importlib.util.spec_from_file_location(f'{function_dir}_entry', SRC_DIR / function_dir / 'lambda_function.py')
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestEntryPoints:
    """Test cases for the thin entry point modules."""

    @pytest.mark.parametrize('function_dir, delegate', [
        ('events_api', 'events_handler_lambda_handler'),
        ('organizers_api', 'organizers_handler_lambda_handler'),
        ('registrations_api', 'registrations_handler_lambda_handler'),
        ('email_processor', 'email_processor_lambda_handler'),
    ])
    def test_delegates_to_handler(self, function_dir, delegate, lambda_context, monkeypatch):
        module = _load(function_dir)
        calls = []
        monkeypatch.setattr(module, delegate, lambda event, context: calls.append((event, context)) or {'statusCode': 200})

        result = module.lambda_handler({'rawPath': '/'}, lambda_context)

        assert result == {'statusCode': 200}
        assert calls == [({'rawPath': '/'}, lambda_context)]

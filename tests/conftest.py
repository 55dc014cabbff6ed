"""Shared fixtures for the bootstrap tests."""

import pytest

from lambda_bootstrap.runtime.context import StaticContext

FUNCTION_ENVIRONMENT = {
    "AWS_LAMBDA_FUNCTION_NAME": "greeter",
    "AWS_LAMBDA_FUNCTION_VERSION": "$LATEST",
    "AWS_LAMBDA_FUNCTION_MEMORY_SIZE": "128",
    "AWS_LAMBDA_LOG_GROUP_NAME": "/aws/lambda/greeter",
    "AWS_LAMBDA_LOG_STREAM_NAME": "2018/11/16/[$LATEST]abcdef",
}


@pytest.fixture
def function_environment(monkeypatch):
    """Set the variables the platform provides to a function process."""
    for name, value in FUNCTION_ENVIRONMENT.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("AWS_LAMBDA_RUNTIME_API", "127.0.0.1:9001")
    return FUNCTION_ENVIRONMENT


@pytest.fixture
def static_context():
    """A static context built without touching the environment."""
    return StaticContext(
        function_name="greeter",
        function_version="$LATEST",
        function_memory_size=128,
        log_group_name="/aws/lambda/greeter",
        log_stream_name="2018/11/16/[$LATEST]abcdef",
    )


@pytest.fixture(autouse=True)
def clear_trace_id(monkeypatch):
    """Keep the trace variable from leaking between tests."""
    monkeypatch.setenv("_X_AMZN_TRACE_ID", "")
    monkeypatch.delenv("_X_AMZN_TRACE_ID")

import json
import re
import time
from urllib.parse import urlsplit

import pytest
import responses

from flagproviders.goff.hook import DataCollectorHook
from flagproviders.goff.options import InvalidOptionError, ProviderOptions
from flagproviders.goff.provider import GoFeatureFlagProvider
from flagproviders.resolution import (
    ErrorCode,
    EvaluationContext,
    FlagType,
    ProviderEventType,
    ProviderState,
    Reason,
    ResolutionDetail,
    ResolutionError,
)

ENDPOINT = "https://gofeatureflag.org/"

FLAGS = {
    "bool_targeting_match": {
        "value": True, "reason": "TARGETING_MATCH", "variant": "True",
        "metadata": {"gofeatureflag_cacheable": True},
    },
    "disabled_bool": {"reason": "DISABLED", "variant": "SdkDefault", "metadata": {}},
    "disabled_string": {"reason": "DISABLED", "variant": "SdkDefault", "metadata": {}},
    "disabled_float": {"reason": "DISABLED", "variant": "SdkDefault", "metadata": {}},
    "disabled_int": {"reason": "DISABLED", "variant": "SdkDefault", "metadata": {}},
    "string_key": {"value": "CC0000", "reason": "TARGETING_MATCH", "variant": "True", "metadata": {}},
    "double_key": {"value": 100.25, "reason": "TARGETING_MATCH", "variant": "True", "metadata": {}},
    "integer_key": {"value": 100, "reason": "TARGETING_MATCH", "variant": "True", "metadata": {}},
    "object_key": {
        "value": {"test": "test1", "test2": False, "test3": 123.3, "test4": 1.0, "test5": None},
        "reason": "TARGETING_MATCH", "variant": "True", "metadata": {},
    },
    "unknown_reason": {"value": True, "reason": "CUSTOM_REASON", "variant": "True", "metadata": {}},
}


class RelayMock:
    def __init__(self):
        self.call_count = 0
        self.collector_count = 0
        self.flag_change_count = 0

    def __call__(self, request):
        path = urlsplit(request.url).path
        if path == "/v1/data/collector":
            self.collector_count += 1
            return 200, {}, ""
        if path == "/v1/flag/change":
            self.flag_change_count += 1
            etag = "78910" if request.headers.get("If-None-Match") == "123456" else "123456"
            return 200, {"ETag": etag}, ""
        self.call_count += 1
        flag = path.replace("/ofrep/v1/evaluate/flags/", "")
        if flag == "unauthorized":
            return 401, {}, ""
        if flag == "invalid_json_body":
            return 200, {}, '{"value": tru'
        if flag in FLAGS:
            return 200, {}, json.dumps({"key": flag, **FLAGS[flag]})
        return 404, {}, json.dumps({"key": flag, "errorCode": "FLAG_NOT_FOUND"})


@pytest.fixture
def relay():
    mock = RelayMock()
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        rsps.add_callback(responses.POST, re.compile(r"https://gofeatureflag\.org/.*"), callback=mock)
        rsps.add_callback(responses.GET, re.compile(r"https://gofeatureflag\.org/.*"), callback=mock)
        yield mock


def default_context():
    return EvaluationContext(
        "d45e303a-38c2-11ed-a261-0242ac120002",
        {
            "email": "john.doe@example.com", "firstname": "john", "lastname": "doe",
            "anonymous": False, "professional": True, "rate": 3.14, "age": 30, "admin": True,
            "company_info": {"name": "my_company", "size": 120}, "labels": ["pro", "beta"],
        },
    ).flatten()


def make_provider(**kwargs):
    options = ProviderOptions(endpoint=ENDPOINT, **kwargs)
    provider = GoFeatureFlagProvider(options)
    provider.initialize(None)
    return provider


def err(code, message):
    return ResolutionError(code, message)


BOOL_CASES = [
    ("unauthorized", ResolutionDetail(False, FlagType.BOOLEAN, "ERROR", "",
                                      err(ErrorCode.GENERAL, "authentication/authorization error"))),
    ("bool_targeting_match", ResolutionDetail(True, FlagType.BOOLEAN, "TARGETING_MATCH", "True", None,
                                              {"gofeatureflag_cacheable": True})),
    ("disabled_bool", ResolutionDetail(False, FlagType.BOOLEAN, "DISABLED", "SdkDefault")),
    ("string_key", ResolutionDetail(False, FlagType.BOOLEAN, "ERROR", "",
                                    err(ErrorCode.TYPE_MISMATCH, "resolved value CC0000 is not of boolean type"))),
    ("does_not_exists", ResolutionDetail(False, FlagType.BOOLEAN, "ERROR", "",
                                         err(ErrorCode.FLAG_NOT_FOUND, "flag for key 'does_not_exists' does not exist"))),
    ("unknown_reason", ResolutionDetail(True, FlagType.BOOLEAN, "CUSTOM_REASON", "True")),
]


@pytest.mark.parametrize("flag,want", BOOL_CASES)
def test_boolean_evaluation(relay, flag, want):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    assert provider.boolean_evaluation(flag, False, default_context()) == want


def test_boolean_missing_targeting_key(relay):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    got = provider.boolean_evaluation("bool_targeting_match", False, {})
    assert got == ResolutionDetail(False, FlagType.BOOLEAN, "ERROR", "", err(
        ErrorCode.TARGETING_KEY_MISSING, "no targetingKey provided in the evaluation context"))
    assert relay.call_count == 0


def test_boolean_invalid_json(relay):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    got = provider.boolean_evaluation("invalid_json_body", False, default_context())
    assert got.value is False
    assert got.reason == Reason.ERROR
    assert got.error.code is ErrorCode.PARSE_ERROR
    assert got.error.message.startswith("error parsing the response:")


@pytest.mark.parametrize("flag,want", [
    ("string_key", ResolutionDetail("CC0000", FlagType.STRING, "TARGETING_MATCH", "True")),
    ("disabled_string", ResolutionDetail("default", FlagType.STRING, "DISABLED", "SdkDefault")),
    ("bool_targeting_match", ResolutionDetail("default", FlagType.STRING, "ERROR", "",
                                              err(ErrorCode.TYPE_MISMATCH, "resolved value true is not of string type"))),
    ("does_not_exists", ResolutionDetail("default", FlagType.STRING, "ERROR", "",
                                         err(ErrorCode.FLAG_NOT_FOUND, "flag for key 'does_not_exists' does not exist"))),
])
def test_string_evaluation(relay, flag, want):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    assert provider.string_evaluation(flag, "default", default_context()) == want


@pytest.mark.parametrize("flag,want", [
    ("double_key", ResolutionDetail(100.25, FlagType.FLOAT, "TARGETING_MATCH", "True")),
    ("disabled_float", ResolutionDetail(123.45, FlagType.FLOAT, "DISABLED", "SdkDefault")),
    ("bool_targeting_match", ResolutionDetail(123.45, FlagType.FLOAT, "ERROR", "",
                                              err(ErrorCode.TYPE_MISMATCH, "resolved value true is not of float type"))),
    ("does_not_exists", ResolutionDetail(123.45, FlagType.FLOAT, "ERROR", "",
                                         err(ErrorCode.FLAG_NOT_FOUND, "flag for key 'does_not_exists' does not exist"))),
])
def test_float_evaluation(relay, flag, want):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    assert provider.float_evaluation(flag, 123.45, default_context()) == want


@pytest.mark.parametrize("flag,want", [
    ("integer_key", ResolutionDetail(100, FlagType.INTEGER, "TARGETING_MATCH", "True")),
    ("disabled_int", ResolutionDetail(123, FlagType.INTEGER, "DISABLED", "SdkDefault")),
    ("bool_targeting_match", ResolutionDetail(123, FlagType.INTEGER, "ERROR", "",
                                              err(ErrorCode.TYPE_MISMATCH, "resolved value true is not of integer type"))),
    ("does_not_exists", ResolutionDetail(123, FlagType.INTEGER, "ERROR", "",
                                         err(ErrorCode.FLAG_NOT_FOUND, "flag for key 'does_not_exists' does not exist"))),
])
def test_int_evaluation(relay, flag, want):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    assert provider.int_evaluation(flag, 123, default_context()) == want


@pytest.mark.parametrize("flag,want", [
    ("object_key", ResolutionDetail({"test": "test1", "test2": False, "test3": 123.3, "test4": 1.0, "test5": None},
                                    FlagType.OBJECT, "TARGETING_MATCH", "True")),
    ("disabled_int", ResolutionDetail(None, FlagType.OBJECT, "DISABLED", "SdkDefault")),
    ("does_not_exists", ResolutionDetail(None, FlagType.OBJECT, "ERROR", "",
                                         err(ErrorCode.FLAG_NOT_FOUND, "flag for key 'does_not_exists' does not exist"))),
])
def test_object_evaluation(relay, flag, want):
    provider = make_provider(disable_cache=True, disable_data_collector=True)
    assert provider.object_evaluation(flag, None, default_context()) == want


def test_cache_same_user(relay):
    provider = make_provider(flag_cache_ttl=300, flag_cache_size=5)
    try:
        reasons = [provider.boolean_evaluation("bool_targeting_match", False, default_context()).reason
                   for _ in range(4)]
    finally:
        provider.shutdown()
    assert reasons == ["TARGETING_MATCH", "CACHED", "CACHED", "CACHED"]
    assert relay.call_count == 1


def test_cache_different_contexts(relay):
    provider = make_provider(flag_cache_ttl=300, flag_cache_size=5)
    keys = ["ffbe55ca-2150-4f15-a842-af6efb3a1391", "316d4ac7-6072-472d-8a33-e35ed1702337",
            "2b31904a-bfb0-46b8-8923-6bf32925de05", "5d1d5245-23fd-466e-96a1-101e5088396e"]
    try:
        reasons = [provider.boolean_evaluation("bool_targeting_match", False, EvaluationContext(k).flatten()).reason
                   for k in keys]
    finally:
        provider.shutdown()
    assert Reason.CACHED not in reasons
    assert relay.call_count == 4


def test_cache_fill_all(relay):
    provider = make_provider(flag_cache_ttl=300, flag_cache_size=2)
    ctxs = [EvaluationContext(k).flatten() for k in (
        "ffbe55ca-2150-4f15-a842-af6efb3a1391", "316d4ac7-6072-472d-8a33-e35ed1702337",
        "2b31904a-bfb0-46b8-8923-6bf32925de05")]
    order = [0, 0, 1, 1, 2, 2, 0]
    try:
        reasons = [provider.boolean_evaluation("bool_targeting_match", False, ctxs[i]).reason for i in order]
    finally:
        provider.shutdown()
    assert reasons == ["TARGETING_MATCH", "CACHED", "TARGETING_MATCH", "CACHED",
                       "TARGETING_MATCH", "CACHED", "TARGETING_MATCH"]
    assert relay.call_count == 4


def test_cache_ttl_reached(relay):
    provider = make_provider(flag_cache_ttl=0.5, flag_cache_size=200)
    try:
        first = provider.boolean_evaluation("bool_targeting_match", False, default_context())
        time.sleep(0.7)
        second = provider.boolean_evaluation("bool_targeting_match", False, default_context())
    finally:
        provider.shutdown()
    assert first.reason == "TARGETING_MATCH"
    assert second.reason == "TARGETING_MATCH"
    assert second.value is True
    assert relay.call_count == 2


def test_flag_change_polling_purges_cache(relay):
    provider = make_provider(flag_cache_ttl=600, disable_data_collector=True, flag_change_polling_interval=0.1)
    try:
        first = provider.boolean_evaluation("bool_targeting_match", False, default_context()).reason
        second = provider.boolean_evaluation("bool_targeting_match", False, default_context()).reason
        third = provider.boolean_evaluation("bool_targeting_match", False, default_context()).reason
        time.sleep(0.22)
        fourth = provider.boolean_evaluation("bool_targeting_match", False, default_context()).reason
    finally:
        provider.shutdown()
    assert [first, second, third, fourth] == ["TARGETING_MATCH", "CACHED", "CACHED", "TARGETING_MATCH"]
    events = provider.events()
    types = []
    while not events.empty():
        types.append(events.get_nowait().event_type)
    assert types[0] is ProviderEventType.PROVIDER_READY
    assert ProviderEventType.PROVIDER_CONFIGURATION_CHANGED in types


def test_lifecycle_and_hooks(relay):
    provider = GoFeatureFlagProvider(ProviderOptions(endpoint=ENDPOINT, disable_cache=True))
    assert provider.status() is ProviderState.NOT_READY
    provider.initialize(None)
    assert provider.status() is ProviderState.READY
    assert len(provider.hooks()) == 1
    assert isinstance(provider.hooks()[0], DataCollectorHook)
    event = provider.events().get_nowait()
    assert (event.provider_name, event.message) == ("GO Feature Flag", "Provider is ready")
    provider.shutdown()
    assert provider.hooks() == []


def test_metadata_and_invalid_options():
    provider = GoFeatureFlagProvider(ProviderOptions(endpoint=ENDPOINT))
    assert provider.metadata() == {"name": "GO Feature Flag Provider"}
    with pytest.raises(InvalidOptionError):
        GoFeatureFlagProvider(ProviderOptions())
# flagproviders

Feature flag providers that resolve flags against three backends and report
every result through one shared model:

- **GO Feature Flag** (`flagproviders.goff`): evaluates flags against a relay
  proxy over HTTP. It caches results that the proxy marks as cacheable in an
  LRU cache with a TTL, and polls the proxy for configuration changes. When the
  configuration changes it purges the cache. It also provides a hook and a
  collector that send usage events to the proxy in batches.
- **LaunchDarkly** (`flagproviders.launchdarkly`): maps an evaluation context
  to a single-kind or multi-kind LaunchDarkly context, calls a LaunchDarkly
  client you supply, and translates its reasons and errors.
- **Harness** (`flagproviders.harness`): turns an evaluation context into a
  Harness `Target` and asks a Harness client you supply for the variation.

## Installation

```
pip install flagproviders
```

To install the test dependencies as well:

```
pip install "flagproviders[test]"
```

## The shared model

`flagproviders.resolution` defines what every provider returns:

- `EvaluationContext`: a targeting key plus attributes. `flatten()` returns the
  plain dictionary the providers take, with the key under `"targetingKey"`.
  `attribute(name)` returns one attribute, or `None`.
- `ResolutionDetail`: `value`, `flag_type` (a `FlagType`), `reason`, `variant`,
  `flag_metadata` and an optional `error`.
- `ResolutionError`: an exception carrying an `ErrorCode` (`code`) and a
  `message`.
- `Reason`, `ProviderState`, `ProviderEvent` and `ProviderEventType`.
- `validate_targeting_key(context)`: raises `ResolutionError` with
  `ErrorCode.TARGETING_KEY_MISSING` unless the flattened context holds a string
  `targetingKey`.

The evaluation methods do not raise for flag problems. When a flag cannot be
resolved, they return the caller's default value with reason `"ERROR"` and a
`ResolutionError` in `error`.

## GO Feature Flag

```python
from flagproviders.goff.options import ProviderOptions
from flagproviders.goff.provider import GoFeatureFlagProvider
from flagproviders.resolution import EvaluationContext

options = ProviderOptions(endpoint="http://localhost:1031", api_key="placeholder")
provider = GoFeatureFlagProvider(options)
provider.initialize(EvaluationContext())

context = EvaluationContext("d45e303a-38c2-11ed-a261-0242ac120002", {"email": "john.doe@example.com"})
detail = provider.boolean_evaluation("my-flag", False, context.flatten())
print(detail.value, detail.reason)

provider.shutdown()
```

The provider has `boolean_evaluation`, `string_evaluation`, `float_evaluation`,
`int_evaluation` and `object_evaluation`. Flags are evaluated by `POST`ing the
context to `<endpoint>/ofrep/v1/evaluate/flags/<flag>` through
`RemoteEvaluator`. Each evaluation needs a string `targetingKey` in the context.

A result is cached only when its flag metadata has `gofeatureflag_cacheable`
set to `true`. A value served from the cache comes back with reason `"CACHED"`.

`ProviderOptions` (durations in seconds):

| option | meaning | default |
|---|---|---|
| `endpoint` | relay proxy address | required |
| `session` | `requests.Session` to use | a new session; requests time out after 10 s |
| `api_key` | sent as `Authorization: Bearer <key>` | none |
| `disable_cache` | evaluate every flag remotely | `False` |
| `flag_cache_size` | cached evaluations | 10000 when 0 |
| `flag_cache_ttl` | cache lifetime | 60 s when 0; a negative value keeps entries forever |
| `data_flush_interval` | how often collected events are sent | 60 s when 0 or less |
| `data_collector_max_event_stored` | queued events before new ones are dropped | 100000 when 0 or less |
| `disable_data_collector` | do not collect usage events | `False` |
| `flag_change_polling_interval` | how often to check for a configuration change | 120 s when 0; a negative value turns polling off |

`ProviderOptions.validate()` raises `InvalidOptionError` when no endpoint is
set, and the provider's constructor calls it.

`initialize()` does three things. Unless the collector is disabled, it starts
the `DataCollectorManager` and exposes a `DataCollectorHook` through `hooks()`.
If the cache is enabled and polling is not turned off, it starts polling
`<endpoint>/v1/flag/change`. Then it puts a `PROVIDER_READY` event on the queue
returned by `events()`. Polling puts `PROVIDER_CONFIGURATION_CHANGED` on the
queue when the configuration changed, and `PROVIDER_STALE` when the check fails.
`shutdown()` stops the collector and the polling.

Lower-level pieces:

- `flagproviders.goff.cache.FlagCache`: `get(flag, context, flag_type)`,
  `set(flag, context, detail)` and `purge()`. `get` raises `CacheTypeError`
  when the stored detail has another flag type.
- `flagproviders.goff.api.GoFeatureFlagAPI`:
  - `collect_data(events)` posts to `<endpoint>/v1/data/collector`.
  - `configuration_has_changed()` returns a `ConfigurationChangeStatus`, using
    the ETag to detect changes.
  - Both raise `ApiError` when the proxy cannot be reached, and `collect_data`
    also raises it for a non-200 answer.
- `flagproviders.goff.collector.DataCollectorManager`: `add_event(event)`
  raises `CollectorFullError` when the queue is full. `send_data()` keeps the
  events if sending fails. `start()` and `stop()` control the background
  flushing.
- `flagproviders.goff.hook.DataCollectorHook`: `after(hook_context, details)`
  queues an event for cached evaluations. `error(hook_context, error)` queues
  one with variation `"SdkDefault"`.
- `flagproviders.goff.model`: `FeatureEvent` (`to_dict()`,
  `marshal_interface()`), `DataCollectorRequest` and `new_feature_event(...)`.

## LaunchDarkly

Pass any object that implements the `LDClient` protocol. Its
`*_variation_detail` methods take a flag key, an `LDContext` or
`MultiLDContext`, and a default, and return an `EvaluationDetail`.

```python
import threading

from flagproviders.launchdarkly.provider import LaunchDarklyProvider

provider = LaunchDarklyProvider(ld_client, kind_attr="kind")
detail = provider.boolean_evaluation(
    "mtls_enabled",
    False,
    {"kind": "multi", "organization": {"key": "blah1234"}},
    threading.Event(),
)
```

The `kind_attr` attribute selects the context kind, and `"user"` is used when
it is missing. The value `"multi"` builds one context per nested dictionary.

- A context with neither a string `targetingKey` nor a non-blank `key`
  resolves with `ErrorCode.TARGETING_KEY_MISSING`.
- If the optional cancellation object's `is_set()` returns true, the result
  carries `ErrorCode.GENERAL` with the message `"context canceled"`.
- LaunchDarkly error kinds are mapped by `to_resolution_error`, for example
  `MALFORMED_FLAG` to `PARSE_ERROR` and `FLAG_NOT_FOUND` to `FLAG_NOT_FOUND`.
- Reason kinds are mapped by `to_reason`: `OFF` becomes `DISABLED` and
  `TARGET_MATCH` becomes `TARGETING_MATCH`.

Log messages go to the `logger` argument, which takes any object with `debug`,
`error` and `warn` methods. The default is `NoOpLogger` from
`flagproviders.launchdarkly.ldlogger`.

## Harness

```python
from flagproviders.harness.provider import HarnessProvider, ProviderConfig

provider = HarnessProvider(ProviderConfig(client_factory=make_client, sdk_key="placeholder"))
provider.initialize(None)
detail = provider.string_evaluation("banner", "off", {"targetingKey": "user-1", "Name": "Jane"})
```

`initialize()` calls `client_factory(sdk_key, *options)`. If that raises, the
provider enters `ProviderState.ERROR` and the exception propagates.

- Before initialization, or after `shutdown()`, evaluations resolve with
  `ErrorCode.PROVIDER_NOT_READY`. In the error state they resolve with
  `ErrorCode.GENERAL`.
- `to_harness_target` maps `targetingKey` to the identifier and `Name` to the
  name. Every other attribute becomes a custom attribute, rendered as text by
  `attribute_to_str`.
- Attributes must be strings, integers, floats or booleans. Any other type
  resolves with `ErrorCode.INVALID_CONTEXT`.
- `object_evaluation` also needs a dictionary as its default value.

## What this package does not do

- There is no client layer that calls providers and runs hooks. You call the
  evaluation methods yourself. To collect usage events, call the
  `DataCollectorHook` methods yourself after each evaluation.
- No LaunchDarkly or Harness client is included. You supply an object that
  implements `LDClient` or `HarnessClient`.

## Running the tests

```
pytest
```
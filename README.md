# xraystrategy

Strategies that a tracing client uses to decide what to record and how to
report it:

- **Sampling** (`xraystrategy.sampling`): which incoming requests are traced.
  - `LocalizedStrategy` makes decisions from rules in a local JSON document.
  - `CentralizedStrategy` gets its rules and reservoir quotas from a local
    tracing daemon. While that data is stale or missing, it falls back to a
    `LocalizedStrategy`.
- **Context missing** (`xraystrategy.ctxmissing`): what happens when a
  subsegment has no parent segment. The choices are raise, log or ignore.
- **Exception formatting** (`xraystrategy.exception`): turns errors into the
  exception records attached to segments, stack frames included.

The package needs nothing outside the standard library. Diagnostics go to the
standard `logging` logger named `xraystrategy`.

## Installation

```
pip install xraystrategy
```

## Local sampling

```python
from xraystrategy.sampling.localized import LocalizedStrategy
from xraystrategy.sampling.rule import Request

rules = b"""{
  "version": 2,
  "default": {"fixed_target": 1, "rate": 0.05},
  "rules": [
    {"host": "*", "http_method": "*", "url_path": "/checkout",
     "fixed_target": 10, "rate": 0.05}
  ]
}"""

strategy = LocalizedStrategy.from_json_bytes(rules)
decision = strategy.should_trace(
    Request(host="shop.example.com", method="GET", url="/checkout")
)
print(decision.sample)
```

`should_trace` returns a `Decision` with a `sample` flag. The rules are tried
in order, and the first one that matches decides. If none matches, the default
rule decides. Each rule has a reservoir. In each second it samples up to
`fixed_target` requests, and after that a `rate` fraction of further requests.

A pattern matches case-insensitively. `*` stands for any run of characters and
`?` for a single character. An empty field in the request matches any pattern.

Two manifest versions are accepted:

- **Version 1**: rules name a `service_name`, which is used as the host.
- **Version 2**: rules name a `host`.

In both versions, non-default rules need `url_path` and `http_method`. The
default rule must not set `url_path`, `service_name` or `http_method`.
Negative `fixed_target` or `rate` values are rejected.

Other ways to get a strategy:

- `LocalizedStrategy.from_file_path("rules.json")` reads the manifest from a
  file.
- `LocalizedStrategy()` with no manifest uses the built-in rules
  (`xraystrategy.sampling.manifest.DEFAULT_RULES`). These sample the first
  request each second and 5% of requests after that.

An invalid manifest raises `ManifestError`, a subclass of `ValueError`. To
parse a manifest without building a strategy, use `manifest_from_json_bytes`
or `manifest_from_file_path` from `xraystrategy.sampling.manifest`.

## Centralized sampling

```python
from xraystrategy.sampling.centralized import CentralizedStrategy
from xraystrategy.sampling.rule import Request

strategy = CentralizedStrategy.from_json_bytes(rules)   # local fallback rules
strategy.load_daemon_endpoints("127.0.0.1:2000")
decision = strategy.should_trace(
    Request(host="shop.example.com", method="GET", url="/checkout",
            service_name="shop", service_type="AWS::EC2::Instance")
)
print(decision.sample, decision.rule)
strategy.stop()
```

The first call to `should_trace` (or an explicit `start()`) starts two
background threads:

- The **rule poller** fetches the sampling rules at once. After that it
  fetches them again about every five minutes.
- The **target poller** runs about every ten seconds. It reports the sampling
  statistics of rules that have been used, and applies the quotas, rates and
  intervals it gets back.

If a reply shows the rules have changed since the last fetch, the rules are
fetched again at once. `stop()` ends both threads, and a later decision starts
them again.

Rules from the service are matched by priority, then by name, on host, path,
method, service name and service type. A decision names the rule that made
it in `Decision.rule`. The manifest counts as expired when it has not been
refreshed for an hour. While it is expired, or while there is neither a
matching rule nor a default rule, decisions come from the fallback strategy.

`CentralizedStrategy()` with no arguments falls back to the built-in local
rules. `CentralizedStrategy.from_file_path(path)` reads the fallback rules from
a file.

The daemon is reached through `xraystrategy.sampling.proxy.DaemonProxy`. It
sends plain HTTP POSTs to `/GetSamplingRules` and `/SamplingTargets`, and its
default address is `127.0.0.1:2000`.

The constructor also takes these arguments:

- `proxy`: any object with `get_sampling_rules()` and
  `get_sampling_targets(statistics)`.
- `clock`: a function returning the current time in seconds.
- `rand`: a function returning a float in [0, 1).

`refresh_manifest()` and `refresh_targets()` can also be called directly. They
raise when the daemon call fails or when some rules or targets could not be
applied.

## Context missing strategies

```python
from xraystrategy.ctxmissing import strategy_for

handler = strategy_for("LOG_ERROR")   # or "RUNTIME_ERROR", "IGNORE_ERROR"
handler.context_missing("no segment in context")
```

- `RuntimeErrorStrategy` raises `ContextMissingError`.
- `LogErrorStrategy` logs "Suppressing AWS X-Ray context missing panic: ..."
  at error level.
- `IgnoreErrorStrategy` does nothing.

An unknown name passed to `strategy_for` raises `ValueError`.

## Exception formatting

```python
from xraystrategy.exception import DefaultFormattingStrategy

formatter = DefaultFormattingStrategy()
try:
    1 / 0
except ZeroDivisionError as err:
    info = formatter.exception_from_error(err)
    print(info.to_dict())
```

`exception_from_error` returns an `ExceptionInfo` that holds:

- a random 16-character hex id;
- the error's type name and message;
- a stack of `Stack` entries (path, line, label);
- a `remote` flag, set when the error has a non-empty `request_id`.

The stack is taken from the error's own `stack_trace()` if it has one.
Otherwise it comes from its traceback, and failing that, from the caller's
frames. Paths under the working directory or the Python installation are
shown relative to it.

`error`/`errorf` and `panic`/`panicf` create an `XRayError` of type `"error"` or
`"panic"` that records the caller's stack. The `f` variants use `%`-style
formatting. `MultiError` groups several errors under one message.

The number of frames kept defaults to 32. Pass `frame_count` from 0 to 32 to
change it. A value outside that range raises `ValueError`.

## What the package does not do

This package holds only the strategies. It does not:

- create, record or send segments;
- read the sampling or context-missing settings from environment variables;
- ship a command-line tool.

The centralized strategy talks only to a daemon's sampling endpoints. It does
not sign requests and does not call the cloud service directly.
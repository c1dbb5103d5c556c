import logging
import json
import datetime

REDACTED = '***REDACTED***'

# Lowercase; matched against dict keys at any depth
SENSITIVE_KEYS = frozenset({
    'password', 'token', 'access', 'refresh',
    'secret', 'authorization', 'signature_key',
    'server_key', 'snap_token', 'account_number',
})

CONTEXT_ATTRS = ('order_id', 'user_id', 'gateway_reference', 'payload')


def scrub(data):
    """
    Returns a copy of `data` with sensitive values replaced.
    """
    if isinstance(data, dict):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else scrub(v)
            for k, v in data.items()
        }
    if isinstance(data, (list, tuple)):
        return [scrub(i) for i in data]
    return data


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, secrets scrubbed.

    Gateway payloads reach the logs as dict messages or as the `payload`
    extra; both go through `scrub` before serialisation.
    """

    def format(self, record):
        if isinstance(record.msg, dict):
            record.msg = scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = scrub(record.args)

        log_record = {
            "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "lvl": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "path": record.pathname,
            "line": record.lineno,
        }

        for attr in CONTEXT_ATTRS:
            if hasattr(record, attr):
                log_record[attr] = scrub(getattr(record, attr))

        if record.exc_info:
            log_record['exc'] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)

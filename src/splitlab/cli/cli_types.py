from datetime import datetime, timezone

import click


class Timestamp(click.ParamType):
    """
    A Click parameter type for points in time: Unix timestamps (as numbers),
    the word ``now``, or datetime strings in the given formats. Values are
    returned as timezone-aware datetimes; naive input is taken as UTC.
    """

    name = "timestamp"

    def __init__(self, formats=None):
        super().__init__()
        self.formats = formats or ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%d", "%Y%m%d"]
        self.datetime_parser = click.DateTime(self.formats)

    def convert(self, value, param, ctx):
        if value is None or isinstance(value, datetime):
            return value
        if str(value).lower() == "now":
            return datetime.now(timezone.utc)

        # Formats first, so that YYYYMMDD is not read as a Unix timestamp.
        try:
            parsed = self.datetime_parser.convert(value, param, ctx)
        except click.exceptions.BadParameter:
            parsed = None

        if parsed is None:
            try:
                return datetime.fromtimestamp(float(value), tz=timezone.utc)
            except (ValueError, TypeError, OverflowError):
                self.fail(
                    f"'{value}' is not a valid timestamp. Expected 'now', a Unix "
                    f"timestamp (e.g., 1672531200) or a string in one of these "
                    f"formats: {', '.join(self.formats)}.",
                    param,
                    ctx,
                )
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed

"""Command-line protocol between a running application and the updater.

The updater receives positional arguments in this order::

    name  version  directory  address  {ignored:dirs}  BEHAVIOR
    [{username} {password} {domain}]  [relaunch-arguments]

Spaces inside every field are written as ``%20``; nothing else is escaped,
so a value that already contains ``%20`` is decoded with a space in its
place.  Directory names inside ``{...}`` are separated by ``:`` and may not
contain one.
"""

from __future__ import annotations

import logging
import shlex
from typing import Iterable, Sequence

from services.update.errors import (
    ArgumentCountError,
    MalformedArgumentError,
    ValidationError,
)
from services.update.models import AppDescriptor, Credentials, UpdateRequest, UpdaterBehavior
from services.update.versioning import parse_version


_LOGGER = logging.getLogger(__name__)

SPACE_ESCAPE = "%20"
LIST_SEPARATOR = ":"

_CORE_ARGUMENT_COUNT = 6
_CREDENTIAL_ARGUMENT_COUNT = 3
VALID_ARGUMENT_COUNTS = (6, 7, 9, 10)


def encode_text(value: str) -> str:
    return value.replace(" ", SPACE_ESCAPE)


def decode_text(value: str) -> str:
    return value.replace(SPACE_ESCAPE, " ")


def encode_ignored(directories: Iterable[str] | None) -> str:
    names = sorted(set(directories or ()))
    for name in names:
        if LIST_SEPARATOR in name:
            raise MalformedArgumentError(
                f"Ignored directory names must not contain '{LIST_SEPARATOR}': {name!r}"
            )
    return "{" + LIST_SEPARATOR.join(encode_text(name) for name in names) + "}"


def decode_ignored(argument: str) -> frozenset[str]:
    inside = _unwrap(argument, "ignored directories")
    if not inside:
        return frozenset()
    return frozenset(
        decode_text(name) for name in inside.split(LIST_SEPARATOR) if name
    )


def encode_credentials(credentials: Credentials | None) -> list[str]:
    if credentials is None:
        return ["{}", "{}", "{}"]
    return [
        "{" + encode_text(part) + "}"
        for part in (credentials.username, credentials.password, credentials.domain)
    ]


def decode_credentials(arguments: Sequence[str]) -> Credentials | None:
    """Decode the ``{username} {password} {domain}`` triple.

    Three empty fields mean that no credentials were given; any other
    combination yields :class:`Credentials` with empty strings for the
    missing parts.
    """

    if len(arguments) != _CREDENTIAL_ARGUMENT_COUNT:
        raise ArgumentCountError(
            f"Expected {_CREDENTIAL_ARGUMENT_COUNT} credential arguments but received {len(arguments)}"
        )
    parts = [_unwrap(argument, "credentials") for argument in arguments]
    if all(argument == "{}" for argument in arguments):
        return None
    username, password, domain = (decode_text(part) for part in parts)
    return Credentials(username=username, password=password, domain=domain)


def join_arguments(arguments: Sequence[str]) -> str:
    """Join the caller's own argv (without the program) into one string."""

    return shlex.join(arguments)


def split_arguments(text: str | None) -> list[str]:
    """Split a relaunch field back into argv.

    Callers that join their arguments with plain spaces produce text that
    ``shlex`` may reject (a lone apostrophe, for instance); such text is
    split on spaces instead.
    """

    if not text:
        return []
    try:
        return shlex.split(text)
    except ValueError:
        _LOGGER.debug("Relaunch arguments are not shell quoted; splitting on spaces")
        return [part for part in text.split(" ") if part]


def encode_request(request: UpdateRequest) -> list[str]:
    """Return the argument list passed to the updater process for ``request``."""

    app = request.app
    arguments = [
        encode_text(app.name),
        encode_text(str(app.require_latest_version())),
        encode_text(app.directory_name or app.name),
        encode_text(app.source_address),
        encode_ignored(app.ignored_directories),
        request.behavior.name,
        *encode_credentials(request.credentials),
    ]
    if request.relaunch_arguments:
        arguments.append(encode_text(request.relaunch_arguments))
    return arguments


def decode_request(arguments: Sequence[str]) -> UpdateRequest:
    """Parse the updater's argument list back into an :class:`UpdateRequest`."""

    count = len(arguments)
    if count not in VALID_ARGUMENT_COUNTS:
        raise ArgumentCountError(
            f"Expected {', '.join(map(str, VALID_ARGUMENT_COUNTS))} arguments but received {count}"
        )

    behavior = UpdaterBehavior.parse(arguments[5])

    try:
        latest_version = parse_version(decode_text(arguments[1]))
    except ValidationError as exc:
        raise MalformedArgumentError(f"Invalid version argument: {arguments[1]!r}") from exc

    app = AppDescriptor(
        name=decode_text(arguments[0]),
        latest_version=latest_version,
        directory_name=decode_text(arguments[2]),
        source_address=decode_text(arguments[3]),
        ignored_directories=decode_ignored(arguments[4]),
    )

    credentials: Credentials | None = None
    index = _CORE_ARGUMENT_COUNT
    if count >= _CORE_ARGUMENT_COUNT + _CREDENTIAL_ARGUMENT_COUNT:
        credentials = decode_credentials(arguments[index : index + _CREDENTIAL_ARGUMENT_COUNT])
        index += _CREDENTIAL_ARGUMENT_COUNT

    relaunch_arguments = decode_text(arguments[index]) if index < count else None

    _LOGGER.debug(
        "Decoded update request for %s %s (behavior=%s, credentials=%s, relaunch=%s)",
        app.name,
        app.latest_version,
        behavior.name,
        "yes" if credentials is not None else "no",
        "yes" if relaunch_arguments is not None else "no",
    )
    return UpdateRequest(
        app=app,
        behavior=behavior,
        credentials=credentials,
        relaunch_arguments=relaunch_arguments,
    )


def _unwrap(argument: str, field_name: str) -> str:
    if not argument.startswith("{"):
        raise MalformedArgumentError(f"The {field_name} argument must start with '{{'")
    if len(argument) < 2 or not argument.endswith("}"):
        raise MalformedArgumentError(f"The {field_name} argument must end with '}}'")
    return argument[1:-1]


__all__ = [
    "SPACE_ESCAPE",
    "VALID_ARGUMENT_COUNTS",
    "decode_credentials",
    "decode_ignored",
    "decode_request",
    "decode_text",
    "encode_credentials",
    "encode_ignored",
    "encode_request",
    "encode_text",
    "join_arguments",
    "split_arguments",
]

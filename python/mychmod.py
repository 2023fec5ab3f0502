#!/usr/bin/env python3
"""
Name: mychmod
Description: add or remove permissions on a list of files
License: perl

Permissions are given per class with repeatable flags: -u/-g/-o add the
letters (any of r, w, x) for user/group/other, -U/-G/-O remove them.
The same change is applied to every file named on the command line.
"""

import sys
import os
import argparse
import stat
from collections import namedtuple
from enum import Enum

# Exit codes
EX_SUCCESS = 0
EX_USAGE = 1
EX_ACCESS = 2
EX_CONFLICT = 3
EX_NOENT = 4
EX_OTHER = 5
VERSION = '1.0'

program_name = os.path.basename(sys.argv[0])

LETTER_BITS = {'r': 4, 'w': 2, 'x': 1}


class SubjectClass(Enum):
    USER = 6
    GROUP = 3
    OTHER = 0

    @property
    def shift(self) -> int:
        return self.value

    @property
    def mask(self) -> int:
        """The three permission bits this class owns within a mode."""
        return 0o7 << self.value


class Direction(Enum):
    ADD = '+'
    REMOVE = '-'


class Outcome(Enum):
    SUCCESS = EX_SUCCESS
    ACCESS_DENIED = EX_ACCESS
    NOT_FOUND = EX_NOENT
    OTHER = EX_OTHER


class PermissionChangeError(Exception):
    description = 'Invalid permission change'
    exit_code = EX_USAGE

    def __init__(self, description=None):
        self.description = description or self.__class__.description
        super().__init__(self.description)


class UsageError(PermissionChangeError):
    description = 'Invalid Argument'


class InvalidPermissionLetter(PermissionChangeError):
    def __init__(self, letter: str):
        self.letter = letter
        super().__init__(f"Invalid permission option: {letter}")


class NoFilesSpecified(PermissionChangeError):
    description = 'No files given'


class ConflictError(PermissionChangeError):
    exit_code = EX_CONFLICT

    def __init__(self, subject: SubjectClass):
        self.subject = subject
        super().__init__(f"Conflicting {subject.name} permission options")


ChangeSet = namedtuple('ChangeSet', ['adds', 'subs'])


class ChangeSetBuilder:
    """Accumulates the add and remove masks from repeated flags."""
    def __init__(self):
        self.adds = 0
        self.subs = 0

    def add_permission_change(self, subject: SubjectClass, direction: Direction, letters: str):
        """
        OR the bits for `letters` into the add or remove mask of `subject`.
        Nothing is recorded if any letter is invalid.
        """
        bits = 0
        for letter in letters:
            if letter not in LETTER_BITS:
                raise InvalidPermissionLetter(letter)
            bits |= LETTER_BITS[letter]

        bits <<= subject.shift
        if direction is Direction.ADD:
            self.adds |= bits
        else:
            self.subs |= bits

    def build(self) -> ChangeSet:
        return ChangeSet(self.adds, self.subs)


def validate(change_set: ChangeSet, targets):
    """Rejects a change that both adds and removes a bit, then an empty file list."""
    overlap = change_set.adds & change_set.subs
    for subject in SubjectClass:
        if overlap & subject.mask:
            raise ConflictError(subject)

    if not targets:
        raise NoFilesSpecified()


class FileTarget:
    """One file named on the command line and what happened to it."""
    def __init__(self, path: str):
        self.path = path
        self.mode = None
        self.outcome = None
        self.message = None

    def fail(self, outcome: Outcome, message: str):
        self.outcome = outcome
        self.message = message
        print(f"{program_name}: {message}", file=sys.stderr)

    def __repr__(self):
        return f"FileTarget({self.path!r}, mode={self.mode!r}, outcome={self.outcome})"


def read_mode(path: str) -> int:
    return stat.S_IMODE(os.stat(path).st_mode)


def write_mode(path: str, mode: int):
    os.chmod(path, mode)


def compute_mode(mode: int, change_set: ChangeSet) -> int:
    # Additions first, then clear whichever requested removals are now set.
    new_mode = mode | change_set.adds
    return new_mode ^ (new_mode & change_set.subs)


def apply_changes(change_set: ChangeSet, targets) -> int:
    """
    Applies the change to each target in order.

    A failure on one file is recorded on its FileTarget and reported on
    stderr, and the next file is still processed. The return value is the
    exit code of the last file that failed, or EX_SUCCESS.
    """
    exit_status = EX_SUCCESS

    for target in targets:
        path = target.path

        try:
            target.mode = read_mode(path)
        except PermissionError:
            target.fail(Outcome.ACCESS_DENIED, f"Access denied to {path}")
        except FileNotFoundError:
            target.fail(Outcome.NOT_FOUND, f"{path} does not exist")
        except OSError as e:
            target.fail(Outcome.OTHER, f"Unexpected error while trying to access {path} - {e.strerror}")

        if target.outcome is not None:
            exit_status = target.outcome.value
            continue

        new_mode = compute_mode(target.mode, change_set)
        try:
            write_mode(path, new_mode)
        except PermissionError:
            target.fail(Outcome.ACCESS_DENIED, f"Insufficient privileges to change {path}")
        except FileNotFoundError:
            target.fail(Outcome.NOT_FOUND, f"{path} does not exist")
        except OSError as e:
            target.fail(Outcome.OTHER, f"Unexpected error while trying to change {path} - {e.strerror}")

        if target.outcome is not None:
            exit_status = target.outcome.value
            continue

        target.mode = new_mode
        target.outcome = Outcome.SUCCESS

    return exit_status


PERMISSION_FLAGS = {
    '-u': (SubjectClass.USER, Direction.ADD),
    '-g': (SubjectClass.GROUP, Direction.ADD),
    '-o': (SubjectClass.OTHER, Direction.ADD),
    '-U': (SubjectClass.USER, Direction.REMOVE),
    '-G': (SubjectClass.GROUP, Direction.REMOVE),
    '-O': (SubjectClass.OTHER, Direction.REMOVE),
}


class PermissionAction(argparse.Action):
    """Feeds each flag into a ChangeSetBuilder as soon as it is parsed."""
    def __init__(self, option_strings, dest, subject=None, direction=None, **kwargs):
        super().__init__(option_strings, dest, **kwargs)
        self.subject = subject
        self.direction = direction

    def __call__(self, parser, namespace, values, option_string=None):
        builder = getattr(namespace, self.dest, None) or ChangeSetBuilder()
        builder.add_permission_change(self.subject, self.direction, values)
        setattr(namespace, self.dest, builder)


class ArgumentParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog=program_name,
        description="Add or remove file permissions.",
        usage="%(prog)s [-u rwx] [-g rwx] [-o rwx] [-U rwx] [-G rwx] [-O rwx] <filename> [<filename>...]",
        add_help=False
    )
    for flag, (subject, direction) in PERMISSION_FLAGS.items():
        parser.add_argument(flag, dest='builder', action=PermissionAction,
                            subject=subject, direction=direction, metavar='rwx')
    parser.add_argument('files', nargs='*')
    return parser


def split_arguments(argv):
    """
    Splits `argv` at the first "--" into (options, files).

    A permission flag always takes the next token as its value, even one
    starting with "-", so the pair is joined before argparse sees it.
    Everything after "--" is a file name.
    """
    options = []
    tokens = iter(argv)
    for token in tokens:
        if token == '--':
            return options, list(tokens)
        if token in PERMISSION_FLAGS:
            value = next(tokens, None)
            if value is not None:
                token += value
        options.append(token)
    return options, []


def run(argv) -> int:
    """Parses `argv` (without the program name), applies it and returns the exit code."""
    parser = build_parser()

    try:
        if len(argv) < 3:
            raise UsageError("Insufficient number of arguments")

        options, trailing_files = split_arguments(argv)
        args = parser.parse_intermixed_args(options)
        change_set = (args.builder or ChangeSetBuilder()).build()

        targets = [FileTarget(path) for path in args.files + trailing_files]
        validate(change_set, targets)
    except PermissionChangeError as e:
        print(f"{program_name}: {e.description}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return e.exit_code

    return apply_changes(change_set, targets)


def main():
    sys.exit(run(sys.argv[1:]))


if __name__ == '__main__':
    main()

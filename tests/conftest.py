"""Shared test fixtures for coderef."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from coderef.code_index.languages import clear_cache

if TYPE_CHECKING:
    from pathlib import Path


# Line numbers below are relied on by the tests; keep them stable.
SAMPLE_TS = """\
import { readFile } from "fs";

export const VERSION = "1.0.0";

/**
 * Greets a user.
 */
export function greet(name: string): string {
  const message = `Hello, ${name}`;
  return message;
}

// multiply two numbers
export const multiply = (a: number, b: number): number => a * b;

function add(a: number, b: number): number {
  return a + b;
}

export class User {
  constructor(private name: string) {}

  /** Returns the user's name. */
  getName(): string {
    return this.name;
  }

  static create(name: string): User {
    return new User(name);
  }
}

const first = 1, second = 2;
const { host, port: serverPort, ...rest } = loadConfig();

interface Options {
  verbose: boolean;
}

function loadConfig(): Record<string, unknown> {
  return {};
}
"""


@pytest.fixture(autouse=True)
def _clear_lang_cache() -> None:
    """Clear language cache before each test to avoid cross-test pollution."""
    clear_cache()


@pytest.fixture()
def sample_ts() -> str:
    return SAMPLE_TS


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal project: ``src/a.ts`` plus an empty ``docs/``."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.ts").write_text(SAMPLE_TS, encoding="utf-8")
    (tmp_path / "docs").mkdir()
    return tmp_path

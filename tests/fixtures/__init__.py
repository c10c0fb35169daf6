"""Test fixtures for envkit tests.

- environments: on-disk virtual environment trees and discovery contexts
- managers: fake locators, servers and EnvManager factories

Import helpers in your tests using:
    from tests.fixtures.environments import make_env, make_context
    from tests.fixtures.managers import build_locators, FakeServer
"""

__all__ = ["environments", "managers"]

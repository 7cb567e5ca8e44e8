"""
Test suites package.

This repository intentionally keeps `testsuites` importable to support:
  - IDE navigation
  - the UI framework living next to the suites that use it
  - CI/CD module imports
"""

"""
Reporting utilities.

Modules:
    - allure_utils: Reporting sink protocol and Allure-backed implementation
"""

"""Test configuration for pytest.

Put the repository root on sys.path so the tests can import the `src`
package from a plain checkout, without an editable install.
"""
import os
import sys

# src/tests -> src -> repository root
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

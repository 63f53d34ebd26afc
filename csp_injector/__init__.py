"""
csp-injector - Content-Security-Policy delivery for builds and the dev server
"""

__version__ = "0.1.0"

from csp_injector.middleware.csp_builder import append_source, build_csp
from csp_injector.models.policy import InvalidPolicyValue, Policy, normalize

__all__ = ['Policy', 'InvalidPolicyValue', 'normalize', 'append_source', 'build_csp']

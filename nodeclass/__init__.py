# -*- coding: utf-8 -*-
"""
NodeClass
=========

Node classification engine: decides which configuration groups a managed
node belongs to and computes the node's effective classes, parameters,
variables and environment.

See ``nodeclass.classification`` for the engine and ``nodeclass.cli`` for
the command-line front end.
"""

__version__ = "0.4.0"

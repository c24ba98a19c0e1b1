"""Mutating admission webhook that pins floating image tags to concrete versions."""

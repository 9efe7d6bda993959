"""State layer.

Actions, the registry/mirror reducer, selectors, and a minimal store. This
package is the only place where received values are merged into the mirror.
"""

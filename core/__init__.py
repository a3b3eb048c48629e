"""core/ -- Kernel package: configuration and the error taxonomy.

Layer rule: core/ imports only stdlib + third-party libraries. Every other
package may import from core/; core/ imports from none of them.
"""

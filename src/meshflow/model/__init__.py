"""
The MODEL layer contains pure data structures for the workflow session.
It has NO knowledge of the GUI (Qt) or of the algorithms that transform it.
It deals with Geometry, Boundary Conditions and I/O of the initial boundary.
"""

"""wienfermi: Fermi surface reconstruction from WIEN2k output files."""

from wienfermi._version import __version__

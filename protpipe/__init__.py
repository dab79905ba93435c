"""
ProtPipe - DIA-NN spectral library and sample analysis in a singularity container
"""
__version__ = "0.1.0"

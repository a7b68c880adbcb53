"""
Eye-tracking ETL (Extract-Transform-Load) package

- errors.py: Error taxonomy shared by the ETL and analysis packages
- io.py: Functions for loading participant recordings and learning-gain data
- preprocess.py: Point filtering, AOI sequences, scanpaths and AOI statistics
"""

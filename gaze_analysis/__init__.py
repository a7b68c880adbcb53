"""
Eye-tracking analysis package

- config.py: Analysis parameters
- clustering.py: Density-based clustering of gaze points into fixations
- sequence.py: Entropy and transition metrics over AOI sequences
- summary.py: Per-participant summaries and learning-gain correlation
- viz.py: Visualization functions for eye tracking data
- run.py: Batch runner and command-line interface
"""

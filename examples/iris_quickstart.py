import logging
import numpy as np
from time import perf_counter
from sklearn.datasets import load_iris
from pcdtree import BuildMethod, DataSet, PCTreeClassifier, cross_validation

logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")

iris = load_iris()
X, y = iris.data, iris.target
feats = list(iris.feature_names)
classes = list(iris.target_names)

clf = PCTreeClassifier(build_method="DE", de_iterations=30, de_population=20,
                       feature_names=feats, random_state=42)

t0 = perf_counter(); clf.fit(X, y); print(f"fit: {perf_counter()-t0:.3f} s")
clf.print_tree(class_names=classes)
for rule in clf.export_rules(class_names=classes):
    print(rule)
try:
    clf.export_graphviz("iris_tree", class_names=classes, format="dot")
except RuntimeError as e:
    print(f"Skipping Graphviz export: {e}")

data = DataSet.from_arrays(X, y, feature_names=feats)
for method in (BuildMethod.C45, BuildMethod.NC_C45):
    t0 = perf_counter()
    results = cross_validation(data, folds=10, build_method=method, n_jobs=4, random_state=0)
    print(f"{method.value}: accuracy {np.mean([r.accuracy() for r in results]):.3f}, "
          f"macro F {np.mean([r.macro_f_measure() for r in results]):.3f} "
          f"({perf_counter()-t0:.1f} s)")

import numpy as np
import pandas as pd
from scipy import stats
from rootclock import config as ttconf
from rootclock import InsufficientDataError, UnknownMethodError
from rootclock import PreconditionWarning, DegenerateInputWarning, InsufficientDataWarning, NegativeRateWarning
from .dates import all_dates, root_time
from .tree_utils import is_rooted, tree_length
from .utils import find_dates, corrcoef_rows, make_logger

tavgii, davgii, tsqii, dtavgii, dsqii, sii = 0,1,2,3,4,5


def sufficient_statistics(t, d):
    """
    sums of dates t, distances d, their squares and products over the
    complete pairs, in the order used by :py:func:`base_regression`
    """
    ind = np.isfinite(t) & np.isfinite(d)
    t, d = t[ind], d[ind]
    return np.array([t.sum(), d.sum(), (t**2).sum(), (d*t).sum(), (d**2).sum(), ind.sum()], dtype=float)


def base_regression(Q, slope=None):
    """
    this function calculates the least squares regression coefficients of
    distance against date for a given vector containing the sums of dates
    and distances and their second moments.

    Parameters
    ----------
    Q : numpy.array
        vector with sum of dates, sum of distances, sum of squared dates,
        sum of products, sum of squared distances, number of pairs
    slope : None, optional
        if given, only the intercept is fitted

    Returns
    -------
    dict
        slope, intercept, chisq (half the residual sum of squares), and if
        the slope was fitted its hessian and covariance matrix

    Raises
    ------
    InsufficientDataError
        if there are too few pairs or no variation in the dates to fit a slope
    """
    if slope is None:
        if Q[sii]<2:
            raise InsufficientDataError("base_regression: need at least two dated tips to estimate a rate.")
        if (Q[tsqii] - Q[tavgii]**2/Q[sii])>0:
            slope = (Q[dtavgii] - Q[tavgii]*Q[davgii]/Q[sii]) \
                /(Q[tsqii] - Q[tavgii]**2/Q[sii])
        else:
            raise InsufficientDataError("No variation in sampling dates! Please specify your clock rate explicitly.")
        only_intercept=False
    else:
        if Q[sii]<1:
            raise InsufficientDataError("base_regression: need at least one dated tip.")
        only_intercept=True

    intercept = (Q[davgii] - Q[tavgii]*slope)/Q[sii]
    chisq = 0.5*(Q[dsqii] - 2*slope*Q[dtavgii] - 2*intercept*Q[davgii]
                 + slope**2*Q[tsqii] + 2*slope*intercept*Q[tavgii] + intercept**2*Q[sii])
    chisq = max(chisq, 0.0)

    if only_intercept:
        return {'slope':slope, 'intercept':intercept,
                'chisq': chisq}

    estimator_hessian = np.array([[Q[tsqii], Q[tavgii]], [Q[tavgii], Q[sii]]])
    # residual variance needs one degree of freedom beyond the two parameters
    sigma_sq = 2*chisq/(Q[sii]-2) if Q[sii]>2 else np.nan

    return {'slope':slope, 'intercept':intercept,
            'chisq':chisq, 'hessian':estimator_hessian,
            'cov':sigma_sq*np.linalg.inv(estimator_hessian)}


def permutation_pvalue(dates, distances, correlation, perm_test, rng):
    """
    Fraction of random reassignments of the dates to the tips that result
    in a correlation strictly larger than the observed one.

    Parameters
    ----------
    dates : numpy.ndarray
        dates of the tips, missing values are shuffled along
    distances : numpy.ndarray
        root-to-tip distances, kept fixed
    correlation : float
        observed correlation
    perm_test : int
        number of permutations
    rng : numpy.random.Generator
        random source

    Returns
    -------
    float
        p-value, a multiple of 1/perm_test. 0 if no permutations are
        performed, nan if the observed correlation is undefined.
    """
    if np.isnan(correlation):
        return np.nan
    if perm_test<=0:
        return 0.0

    exceed = 0
    for start in range(0, perm_test, ttconf.PERM_BLOCK_SIZE):
        k = min(ttconf.PERM_BLOCK_SIZE, perm_test-start)
        shuffled = rng.permuted(np.tile(dates, (k,1)), axis=1)
        exceed += int(np.sum(corrcoef_rows(shuffled, distances)>correlation))
    return exceed/perm_test


class RegressionResult(object):
    """
    Result of a root-to-tip regression: clock rate, date of the root and
    the p-value of the permutation test, along with the data and statistics
    needed to report or plot the regression.

    Missing values are nan. A degenerate regression (no variation in the
    dates, too few dated tips) has rate, origin date and p-value nan.
    """
    def __init__(self, rate=np.nan, intercept=np.nan, pvalue=np.nan, r2=np.nan,
                 correlation=np.nan, rate_std=np.nan, perm_test=ttconf.PERM_TEST,
                 fixed_rate=None, tip_names=None, dates=None, distances=None, warnings=None):
        self.rate = rate
        self.intercept = intercept
        self.pvalue = pvalue
        self.r2 = r2
        self.correlation = correlation
        self.rate_std = rate_std
        self.perm_test = perm_test
        self.fixed_rate = fixed_rate
        self.tip_names = tip_names if tip_names is not None else []
        self.dates = dates if dates is not None else np.array([])
        self.distances = distances if distances is not None else np.array([])
        self.warnings = warnings if warnings is not None else []
        with np.errstate(divide='ignore', invalid='ignore'):
            self.origin_date = -np.float64(intercept)/np.float64(rate)


    @classmethod
    def from_regression(cls, clock_model, **kwargs):
        """
        Create the result object from the dictionary returned by base_regression

        Parameters
        ----------

         clock_model : dict
            dictionary with fields intercept and slope, optionally cov

        """
        rate_std = np.sqrt(clock_model['cov'][0,0]) if 'cov' in clock_model else np.nan
        return cls(rate=clock_model['slope'], intercept=clock_model['intercept'],
                   rate_std=rate_std, **kwargs)


    @property
    def ori(self):
        return self.origin_date

    @property
    def is_degenerate(self):
        return bool(np.isnan(self.rate))

    @property
    def negative_rate(self):
        return bool(self.rate<0)


    def pvalue_str(self):
        """
        p-value for display. A p-value of zero only says that no permutation
        exceeded the observed correlation and is shown as an upper bound.
        """
        if np.isnan(self.pvalue):
            return 'p=nan'
        if self.pvalue==0:
            return 'p<%1.2e'%(1.0/self.perm_test if self.perm_test>0 else 1.0)
        return 'p=%1.2e'%self.pvalue


    def __str__(self):
        if self.is_degenerate:
            return 'Root-Tip-Regression:\n --undefined, dates without variation or too few dated tips\n'
        if np.isfinite(self.rate_std):
            outstr = ('Root-Tip-Regression:\n --rate:\t%1.3e +/- %1.2e (one std-dev)\n'%(self.rate, self.rate_std))
        else:
            outstr = ('Root-Tip-Regression:\n --rate:\t%1.3e%s\n'%(self.rate, ' (fixed)' if self.fixed_rate is not None else ''))
        outstr += (' --MRCA:\t%1.2f\n --r^2:  \t%1.2f\n --%s\n'
                   %(self.origin_date, self.r2, self.pvalue_str()))
        return outstr


    def as_dict(self):
        return {'rate':self.rate, 'ori':self.origin_date, 'pvalue':self.pvalue}


    def predict(self, t):
        """root-to-tip distance expected at date t"""
        return self.rate*np.asarray(t, dtype=float) + self.intercept


    def to_dataframe(self):
        """
        table with one row per tip: date, root-to-tip distance, the value
        of the regression line and the residual
        """
        df = pd.DataFrame({'date':self.dates, 'distance':self.distances},
                          index=pd.Index(self.tip_names, name='name'))
        df['fitted'] = self.predict(df['date'].values)
        df['residual'] = df['distance'] - df['fitted']
        return df


def root_to_tip(tree, dates, rate=None, perm_test=ttconf.PERM_TEST, rng=None, rng_seed=None,
                logger=None, verbose=ttconf.VERBOSE):
    """
    Regression of root-to-tip distance against sampling date.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        rooted tree with branch lengths in substitutions

    dates : dict, pandas.Series, list, numpy.ndarray
        sampling dates, either keyed by tip name or aligned to the tips,
        see :py:func:`rootclock.utils.find_dates`

    rate : float, optional
        fixed clock rate, only the intercept is estimated if given

    perm_test : int
        number of permutations to compute the p-value with a permutation test

    rng : numpy.random.Generator, optional
        random source for the permutations

    rng_seed : int, optional
        seed for a new random source, used if rng is None

    logger : callable, optional
        log function as returned by :py:func:`rootclock.utils.make_logger`

    verbose : int
        verbosity of the logger created if none is passed

    Returns
    -------
    RegressionResult
        rate, origin date and p-value. Advisory conditions are listed in
        the attribute ``warnings``.
    """
    if logger is None:
        logger = make_logger(verbose)
    warnings = []
    def warn(category, msg):
        warnings.append(category(msg))
        logger(msg, 1, warn=True)

    if not is_rooted(tree):
        warn(PreconditionWarning, "root_to_tip: was called on an unrooted input tree. Consider using init_root first.")
    if tree_length(tree)<ttconf.MIN_TREE_LENGTH:
        warn(PreconditionWarning, "root_to_tip: input tree has small branch lengths. Make sure branch lengths "
                                  "are in number of substitutions (NOT per site).")

    t = find_dates(tree, dates)
    names = [tip.name for tip in tree.get_terminals()]
    fixed_rate = None if (rate is None or np.isnan(rate)) else float(rate)
    d = all_dates(tree)[:len(names)] - root_time(tree)
    result_kwargs = {'perm_test':perm_test, 'fixed_rate':fixed_rate, 'tip_names':names,
                     'dates':t, 'distances':d}

    dated = t[np.isfinite(t)]
    if fixed_rate is None and len(dated)>1 and np.all(dated==dated[0]):
        warn(DegenerateInputWarning, "root_to_tip: all dates are identical.")
        return RegressionResult(warnings=warnings, **result_kwargs)

    Q = sufficient_statistics(t, d)
    if Q[sii]<(1 if fixed_rate is not None else 2):
        warn(InsufficientDataWarning, "root_to_tip: only %d tips have a date, too few for a regression."%Q[sii])
        return RegressionResult(warnings=warnings, **result_kwargs)

    reg = base_regression(Q, slope=fixed_rate)
    if fixed_rate is None:
        sstot = Q[dsqii] - Q[davgii]**2/Q[sii]
        r2 = 1.0 - 2*reg['chisq']/sstot if sstot>0 else np.nan
    else:
        # an intercept-only fit explains none of the variance
        r2 = 0.0
    correlation = corrcoef_rows(t, d)

    if rng is None:
        rng = np.random.default_rng(rng_seed)
    logger("root_to_tip: permutation test with %d permutations"%perm_test, 2)
    pvalue = permutation_pvalue(t, d, correlation, perm_test, rng)

    res = RegressionResult.from_regression(reg, pvalue=pvalue, r2=r2, correlation=correlation,
                                           warnings=warnings, **result_kwargs)
    if res.rate<0:
        warn(NegativeRateWarning, "root_to_tip: the linear regression suggests a negative rate.")
        return res

    logger(str(res), 2)
    return res


def prediction_interval(result, t, kind='gamma', alpha=ttconf.PREDICTION_ALPHA):
    """
    Range of root-to-tip distances expected under a strict clock.

    Parameters
    ----------
    result : RegressionResult
        regression providing rate and origin date

    t : float, numpy.ndarray
        dates at which the band is evaluated

    kind : str
        'gamma' for quantiles of a Gamma distribution with shape
        (t - origin)*rate and unit scale, 'poisson' for quantiles of a
        Poisson distribution with mean (t - origin)*rate

    alpha : float
        the band covers the central 1-alpha of the distribution

    Returns
    -------
    tuple
        lower and upper bounds, nan where the expected distance is not positive
    """
    expected = (np.asarray(t, dtype=float) - result.origin_date)*result.rate
    with np.errstate(invalid='ignore'):
        expected = np.where(expected>0, expected, np.nan)
        if kind=='gamma':
            lower = stats.gamma.ppf(alpha/2, expected, scale=1)
            upper = stats.gamma.ppf(1-alpha/2, expected, scale=1)
        elif kind=='poisson':
            lower = stats.poisson.ppf(alpha/2, expected)
            upper = stats.poisson.ppf(1-alpha/2, expected)
        else:
            raise UnknownMethodError("prediction_interval: unknown kind '%s', use 'gamma' or 'poisson'"%kind)
    return lower, upper

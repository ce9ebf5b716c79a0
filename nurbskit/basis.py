import numpy as np

from . import knot


def find_span(n, p, U, u):

    ''' Determine the knot span index, i.e. the index i for which (U[i]
    <= u < U[i+1]).  The right end of the domain, u = U[n+1], belongs to
    the last nonzero span, i = n.

    Source: The NURBS Book (2nd Ed.), Pg. 68.

    '''

    u = knot.check_knot(U, u)
    if u >= U[n+1]:
        return n
    if u <= U[p]:
        return p
    low, high = p, n + 1
    mid = (low + high) // 2
    while u < U[mid] or u >= U[mid+1]:
        if u < U[mid]:
            high = mid
        else:
            low = mid
        mid = (low + high) // 2
    return mid


def find_span_v(n, p, U, u, num):

    ''' Idem find_span, vectorized in u.

    '''

    u = knot.check_knot_v(U, u)
    u = np.clip(u, U[p], U[n+1])
    span = np.searchsorted(U, u, side='right') - 1
    return np.clip(span, p, n)


def find_span_mult(n, p, U, u):

    ''' Determine the knot span index and the multiplicity of u in U.

    '''

    return find_span(n, p, U, u), knot.find_mult_knot(U, u)


# The following functions are based on the property that, in any given
# knot span, [ u_i, u_(i+1) ), at most p + 1 of the B-spline basis
# functions are nonzero, namely the functions (N_(i-p,p)(u),...,
# N_(i,p)(u)).
# NOTE: i is the knot span index of u


def basis_funs(i, u, p, U):

    ''' Compute all nonvanishing basis functions and store them in the
    array (N[0],...,N[p]).  A zero knot difference contributes nothing.

    Source: The NURBS Book (2nd Ed.), Pg. 70.

    '''

    N = np.zeros(p + 1)
    left = np.zeros(p + 1)
    right = np.zeros(p + 1)
    N[0] = 1.0
    for j in range(1, p + 1):
        left[j], right[j] = u - U[i+1-j], U[i+j] - u
        saved = 0.0
        for r in range(j):
            den = right[r+1] + left[j-r]
            tmp = N[r] / den if den != 0.0 else 0.0
            N[r] = saved + right[r+1] * tmp
            saved = left[j-r] * tmp
        N[j] = saved
    return N


def basis_funs_v(i, u, p, U, num):

    ''' Idem basis_funs, vectorized in u.

    '''

    N = np.zeros((p + 1, num))
    left = np.zeros((p + 1, num))
    right = np.zeros((p + 1, num))
    N[0] = 1.0
    for j in range(1, p + 1):
        left[j], right[j] = u - U[i+1-j], U[i+j] - u
        saved = 0.0
        for r in range(j):
            den = right[r+1] + left[j-r]
            tmp = np.divide(N[r], den, out=np.zeros(num), where=den != 0.0)
            N[r] = saved + right[r+1] * tmp
            saved = left[j-r] * tmp
        N[j] = saved
    return N


def ders_basis_funs(i, u, p, n, U):

    ''' Compute the nonzero basis functions and their derivatives, up to
    and including the nth derivative.  Output is in the two-dimensional
    array, ders.  ders[k,j] is the kth derivative of the function
    N_(i-p+j,p)(u) where (0 <= k <= n) and (0 <= j <= p).  Rows beyond
    the pth derivative (n > p) are left to zero.

    Source: The NURBS Book (2nd Ed.), Pg. 72.

    '''

    ders = np.zeros((n + 1, p + 1))
    ndu = np.zeros((p + 1, p + 1))
    a = np.zeros((2, p + 1))
    left = np.zeros(p + 1)
    right = np.zeros(p + 1)
    n = min(n, p)
    ndu[0,0] = 1.0
    for j in range(1, p + 1):
        left[j] = u - U[i+1-j]
        right[j] = U[i+j] - u
        saved = 0.0
        for r in range(j):
            ndu[j,r] = right[r+1] + left[j-r]
            tmp = ndu[r,j-1] / ndu[j,r] if ndu[j,r] != 0.0 else 0.0
            ndu[r,j] = saved + right[r+1] * tmp
            saved = left[j-r] * tmp
        ndu[j,j] = saved
    for j in range(p + 1):
        ders[0,j] = ndu[j,p]
    for r in range(p + 1):
        s1, s2 = 0, 1
        a[0,0] = 1.0
        for k in range(1, n + 1):
            d = 0.0
            rk, pk = r - k, p - k
            if r >= k:
                a[s2,0] = a[s1,0] / ndu[pk+1,rk]
                d = a[s2,0] * ndu[rk,pk]
            if rk >= - 1:
                j1 = 1
            else:
                j1 = -rk
            if r - 1 <= pk:
                j2 = k - 1
            else:
                j2 = p - r
            for j in range(j1, j2 + 1):
                a[s2,j] = (a[s1,j] - a[s1,j-1]) / ndu[pk+1,rk+j]
                d += a[s2,j] * ndu[rk+j,pk]
            if r <= pk:
                a[s2,k] = - a[s1,k-1] / ndu[pk+1,r]
                d += a[s2,k] * ndu[r,pk]
            ders[k,r] = d
            j = s1; s1 = s2; s2 = j
    r = p
    for k in range(1, n + 1):
        for j in range(p + 1):
            ders[k,j] *= r
        r *= p - k
    return ders


def one_basis_fun(p, U, i, u):

    ''' Compute the single basis function N_(i,p)(u).  Unlike
    basis_funs, i need not be the span index of u.

    Source: The NURBS Book (2nd Ed.), Pg. 74.

    '''

    m = U.size - 1
    if ((i == 0 and u == U[0]) or
        (i == m - p - 1 and u == U[m])):
        return 1.0
    if u < U[i] or u >= U[i+p+1]:
        return 0.0
    N = np.zeros(p + 1)
    for j in range(p + 1):
        if U[i+j] <= u < U[i+j+1]:
            N[j] = 1.0
    for k in range(1, p + 1):
        if N[0] == 0.0:
            saved = 0.0
        else:
            saved = ((u - U[i]) * N[0]) / (U[i+k] - U[i])
        for j in range(p - k + 1):
            Uleft, Uright = U[i+j+1], U[i+j+k+1]
            if N[j+1] == 0.0:
                N[j] = saved; saved = 0.0
            else:
                tmp = N[j+1] / (Uright - Uleft)
                N[j] = saved + (Uright - u) * tmp
                saved = (u - Uleft) * tmp
    return N[0]
